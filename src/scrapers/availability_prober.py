# src/scrapers/availability_prober.py

"""Checks whether a storefront product can be bought at a pincode."""

import json
import logging
from typing import Any

from bs4 import BeautifulSoup

from src.config.settings import Settings
from src.core.errors import FetchError, FetchTimeout, ProbeError
from src.models.availability_verdict import AvailabilityVerdict
from src.scrapers.page_fetcher import PageFetcher

logger = logging.getLogger("stockwatch.prober")

# The storefront lists a stale default location first; the entry for
# the typed pincode is the second suggestion.
SUGGESTION_INDEX = 1
MIN_SUGGESTIONS = SUGGESTION_INDEX + 1


def load_selectors(source: str | None = None) -> dict[str, str]:
    """Load CSS selectors for the storefront from selectors.json."""
    with open(Settings.SELECTORS_PATH) as f:
        all_selectors: dict[str, Any] = json.load(f)
    result: dict[str, str] = all_selectors.get(
        source or Settings.STOREFRONT_SOURCE, {}
    )
    return result


def purchase_enabled(soup: BeautifulSoup, selector: str) -> bool:
    """True when the purchase action exists and is not disabled."""
    button = soup.select_one(selector)
    if button is None:
        return False
    if button.has_attr("disabled"):
        return False
    if button.get("aria-disabled") == "true":
        return False
    classes = button.get("class") or []
    return "disabled" not in classes


class AvailabilityProber:
    """Derives an :class:`AvailabilityVerdict` from a rendered product page."""

    def __init__(
        self,
        fetcher: PageFetcher,
        selectors: dict[str, str] | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.settings = Settings()
        self.selectors: dict[str, str] = selectors or load_selectors()

    def _count_suggestions(self, soup: BeautifulSoup) -> int:
        return len(soup.select(self.selectors["location_suggestions"]))

    def _product_name(self, soup: BeautifulSoup) -> str:
        title = soup.select_one(self.selectors["product_name"])
        if title is not None:
            return title.get_text(" ", strip=True)
        meta = soup.select_one(self.selectors["product_title_meta"])
        if meta is not None:
            return str(meta.get("content") or "").strip()
        return ""

    def read_verdict(self, soup: BeautifulSoup) -> AvailabilityVerdict:
        """Extract the three stock signals and the product name."""
        sel = self.selectors
        return AvailabilityVerdict.from_signals(
            sold_out=soup.select_one(sel["sold_out_alert"]) is not None,
            notify_me=soup.select_one(sel["notify_me"]) is not None,
            purchase_enabled=purchase_enabled(soup, sel["add_to_cart"]),
            product_name=self._product_name(soup),
        )

    def read_schema_verdict(
        self, soup: BeautifulSoup,
    ) -> AvailabilityVerdict | None:
        """Verdict from the schema.org availability link.

        Server-rendered pages carry ``<link itemprop="availability"
        href="https://schema.org/InStock">`` before any script runs.
        Returns ``None`` when the page has no such link.
        """
        link = soup.select_one(self.selectors["availability_schema"])
        if link is None:
            return None
        in_stock = "InStock" in str(link.get("href") or "")
        return AvailabilityVerdict(
            available=in_stock,
            product_name=self._product_name(soup),
            sold_out=not in_stock,
            purchase_enabled=in_stock,
        )

    async def _has_location_widget(self, handle: Any) -> bool:
        # The widget is injected by script after DOMContentLoaded.
        try:
            await self.fetcher.wait_for_selector(
                handle,
                self.selectors["pincode_input"],
                self.settings.LOCATION_WIDGET_TIMEOUT,
            )
        except FetchTimeout:
            logger.debug("No location widget on page")
            return False
        return True

    async def _set_location(self, handle: Any, pincode: str) -> None:
        """Type the pincode and pick the second suggestion."""
        sel = self.selectors
        await self.fetcher.type_text(
            handle,
            sel["pincode_input"],
            pincode,
            self.settings.SUGGESTION_TIMEOUT,
        )
        try:
            await self.fetcher.wait_for_predicate(
                handle,
                lambda soup: self._count_suggestions(soup) >= MIN_SUGGESTIONS,
                self.settings.SUGGESTION_TIMEOUT,
            )
        except FetchTimeout as exc:
            msg = (
                f"fewer than {MIN_SUGGESTIONS} location suggestions "
                f"for pincode {pincode}"
            )
            raise ProbeError(msg) from exc
        await self.fetcher.click(
            handle,
            sel["location_suggestions"],
            SUGGESTION_INDEX,
            self.settings.SUGGESTION_TIMEOUT,
        )
        await self.fetcher.wait_for_selector_hidden(
            handle, sel["location_modal"], self.settings.CONTENT_TIMEOUT,
        )
        logger.debug("Location set to %s", pincode)

    async def probe(
        self, product_url: str, pincode: str,
    ) -> AvailabilityVerdict:
        """Check availability of *product_url* for delivery to *pincode*.

        Raises :class:`ProbeError` on any timeout or transport failure.
        """
        logger.info("Probing %s @ %s", product_url, pincode)
        try:
            handle = await self.fetcher.load(
                product_url, self.settings.PAGE_LOAD_TIMEOUT,
            )
        except FetchError as exc:
            msg = f"could not load product page: {exc}"
            raise ProbeError(msg) from exc

        try:
            verdict: AvailabilityVerdict | None = None
            if self.fetcher.interactive:
                if await self._has_location_widget(handle):
                    await self._set_location(handle, pincode)
            else:
                logger.debug(
                    "Fetcher is not interactive, pincode %s not applied",
                    pincode,
                )
                verdict = await self.fetcher.extract(
                    handle, self.read_schema_verdict,
                )
            if verdict is None:
                await self.fetcher.wait_for_selector(
                    handle,
                    self.selectors["product_detail"],
                    self.settings.CONTENT_TIMEOUT,
                )
                verdict = await self.fetcher.extract(
                    handle, self.read_verdict,
                )
        except FetchError as exc:
            raise ProbeError(str(exc)) from exc
        finally:
            await self.fetcher.close(handle)

        logger.info(
            "Verdict for %s @ %s: available=%s "
            "(sold_out=%s, notify_me=%s, purchase_enabled=%s)",
            product_url,
            pincode,
            verdict.available,
            verdict.sold_out,
            verdict.notify_me,
            verdict.purchase_enabled,
        )
        return verdict
