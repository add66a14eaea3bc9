# src/models/subscription.py

"""In-memory subscription owned by the subscription manager."""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from src.models.status_record import status_key
from src.models.stock_status import StockStatus


class ConversationState(str, Enum):
    """Enrollment dialogue position of a subscription."""

    AWAITING_PRODUCT_REF = "AwaitingProductRef"
    AWAITING_POSTAL_CODE = "AwaitingPostalCode"
    ACTIVE = "Active"


@dataclass(eq=False)
class Subscription:
    """One subscriber's interest in one product at one pincode."""

    subscriber_id: str
    product_ref: str | None = None
    postal_code: str | None = None
    state: ConversationState = ConversationState.AWAITING_PRODUCT_REF
    last_known_status: StockStatus = StockStatus.UNKNOWN
    job: Any = None
    generation: int = 0
    active: bool = True
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def key(self) -> str:
        """Status store key for this subscription."""
        return status_key(
            self.subscriber_id,
            self.product_ref or "",
            self.postal_code or "",
        )

    @property
    def is_tracking(self) -> bool:
        return self.active and self.state is ConversationState.ACTIVE
