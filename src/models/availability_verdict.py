# src/models/availability_verdict.py

"""Outcome of a single availability probe."""

from dataclasses import dataclass


@dataclass(frozen=True)
class AvailabilityVerdict:
    """Tri-signal availability verdict for one product page render."""

    available: bool
    product_name: str = ""
    sold_out: bool = False
    notify_me: bool = False
    purchase_enabled: bool = False

    @classmethod
    def from_signals(
        cls,
        sold_out: bool,
        notify_me: bool,
        purchase_enabled: bool,
        product_name: str = "",
    ) -> "AvailabilityVerdict":
        """Fold the three page signals into a verdict.

        Any single "unavailable" signal wins: a sold-out alert or a
        notify-me block marks the product unavailable even when the
        purchase button looks enabled.
        """
        return cls(
            available=(
                not sold_out and not notify_me and purchase_enabled
            ),
            product_name=product_name,
            sold_out=sold_out,
            notify_me=notify_me,
            purchase_enabled=purchase_enabled,
        )
