# src/filters/subscription_validator.py

"""Validation of the product URL and pincode a subscriber sends."""

import logging
import re
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from src.config.settings import Settings
from src.core.errors import ValidationError

logger = logging.getLogger("stockwatch.filters")

_PINCODE_RE = re.compile(r"[0-9]{%d}" % Settings.PINCODE_LENGTH)

# Marketing params that vary per share link
_TRACKING_PARAMS: frozenset[str] = frozenset({
    "utm_source", "utm_medium", "utm_campaign", "utm_term",
    "utm_content", "fbclid", "gclid", "ref",
})


def normalize_product_url(raw_url: str) -> str:
    """Strip tracking query params and the fragment from a product URL."""
    parsed = urlparse(raw_url.strip())
    params = parse_qs(parsed.query, keep_blank_values=True)
    cleaned = {
        k: v for k, v in params.items()
        if k.lower() not in _TRACKING_PARAMS
    }
    new_query = urlencode(cleaned, doseq=True) if cleaned else ""
    return urlunparse((
        parsed.scheme,
        parsed.netloc,
        parsed.path,
        parsed.params,
        new_query,
        "",  # drop fragment
    ))


class SubscriptionValidator:
    """Validate subscriber input before a subscription is created."""

    @staticmethod
    def validate_product_ref(
        text: str, storefront_host: str | None = None,
    ) -> str:
        """Return the normalised product URL or raise ``ValidationError``.

        The URL must use an http(s) scheme and contain the storefront
        host.
        """
        host = storefront_host or Settings.STOREFRONT_HOST
        candidate = text or ""
        if not candidate.lower().startswith(("http://", "https://")):
            logger.debug("Rejected product ref without scheme: %r", candidate)
            msg = "Product link must start with http:// or https://"
            raise ValidationError(msg)
        if host.lower() not in candidate.lower():
            logger.debug(
                "Rejected product ref outside %s: %r", host, candidate,
            )
            msg = f"Product link must point to {host}"
            raise ValidationError(msg)
        return normalize_product_url(candidate)

    @staticmethod
    def validate_postal_code(text: str) -> str:
        """Return the pincode or raise ``ValidationError``."""
        candidate = text or ""
        if not _PINCODE_RE.fullmatch(candidate):
            logger.debug("Rejected pincode: %r", candidate)
            msg = (
                f"Pincode must be exactly {Settings.PINCODE_LENGTH} digits"
            )
            raise ValidationError(msg)
        return candidate
