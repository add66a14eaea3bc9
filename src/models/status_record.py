# src/models/status_record.py

"""Persisted last-known availability for one subscription key."""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from src.models.stock_status import StockStatus


def status_key(subscriber_id: str, product_url: str, pincode: str) -> str:
    """Build the composite store key ``subscriber_url_pincode``."""
    return f"{subscriber_id}_{product_url}_{pincode}"


def subscriber_from_key(key: str, record: "StatusRecord") -> str | None:
    """Recover the subscriber id from a key and the record stored under it.

    Returns ``None`` when the key does not end with the record's
    product URL and pincode.
    """
    suffix = f"_{record.product_url}_{record.pincode}"
    if not key.endswith(suffix) or len(key) == len(suffix):
        return None
    return key[: -len(suffix)]


def _parse_ts(raw: Any) -> datetime | None:
    if not raw:
        return None
    return datetime.fromisoformat(str(raw))


def _parse_flag(raw: Any, default: bool) -> bool:
    if raw is None:
        return default
    if isinstance(raw, str):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    return bool(raw)


@dataclass(frozen=True)
class StatusRecord:
    """Durable status of one subscriber/product/pincode combination."""

    product_url: str
    pincode: str
    tracking_started: datetime
    last_checked: datetime
    current_status: StockStatus = StockStatus.UNKNOWN
    product_name: str = ""
    last_available: datetime | None = None
    active: bool = True

    @classmethod
    def new(
        cls, product_url: str, pincode: str, now: datetime,
    ) -> "StatusRecord":
        """Create a fresh record whose tracking starts at *now*."""
        return cls(
            product_url=product_url,
            pincode=pincode,
            tracking_started=now,
            last_checked=now,
        )

    def observe(
        self,
        status: StockStatus,
        product_name: str,
        checked_at: datetime,
    ) -> "StatusRecord":
        """Return a copy updated with one probe observation.

        ``tracking_started`` is never touched.  ``last_available`` only
        moves on an in-stock observation and never goes backwards.
        The ``active`` flag is left as it is.
        """
        last_available = self.last_available
        if status is StockStatus.IN_STOCK:
            if last_available is None or checked_at > last_available:
                last_available = checked_at
        return replace(
            self,
            current_status=status,
            product_name=product_name or self.product_name,
            last_checked=checked_at,
            last_available=last_available,
        )

    def deactivate(self) -> "StatusRecord":
        """Return a copy flagged as no longer watched."""
        return replace(self, active=False)

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the JSON layout of the status file."""
        return {
            "productUrl": self.product_url,
            "pincode": self.pincode,
            "productName": self.product_name,
            "trackingStarted": self.tracking_started.isoformat(),
            "lastAvailable": (
                self.last_available.isoformat()
                if self.last_available
                else None
            ),
            "currentStatus": self.current_status.value,
            "lastChecked": self.last_checked.isoformat(),
            "active": self.active,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StatusRecord":
        """Parse one entry of the status file.

        Raises ``KeyError``/``ValueError`` on malformed entries.
        """
        tracking_started = _parse_ts(data["trackingStarted"])
        if tracking_started is None:
            msg = "trackingStarted is required"
            raise ValueError(msg)
        last_checked = _parse_ts(data.get("lastChecked")) or tracking_started
        return cls(
            product_url=str(data["productUrl"]),
            pincode=str(data["pincode"]),
            tracking_started=tracking_started,
            last_checked=last_checked,
            current_status=StockStatus.parse(data.get("currentStatus")),
            product_name=str(data.get("productName") or ""),
            last_available=_parse_ts(data.get("lastAvailable")),
            active=_parse_flag(data.get("active"), True),
        )
