# src/scrapers/html_fetcher.py

"""Lightweight page fetcher: one HTTP GET, parsed with BeautifulSoup."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

import cloudscraper  # type: ignore[import-untyped]
from bs4 import BeautifulSoup
from curl_cffi import requests as curl_requests

from src.config.settings import Settings
from src.core.errors import FetchError, FetchTimeout
from src.scrapers.page_fetcher import Extractor, PageFetcher, Predicate, T

logger = logging.getLogger("stockwatch.html")


@dataclass
class HtmlDocument:
    """A statically fetched page."""

    url: str
    soup: BeautifulSoup


class HtmlPageFetcher(PageFetcher):
    """Fetches the server-rendered HTML of a product page.

    No JavaScript runs, so the page cannot be localised to a pincode
    and every wait is an immediate check of the fetched markup.
    Requests go through a browser-impersonating curl_cffi session and
    fall back to cloudscraper when that session is exhausted.
    """

    interactive = False

    # Cloudflare challenge page markers (checked before keyword scan)
    _CF_CHALLENGE_MARKERS: list[str] = [
        "challenges.cloudflare.com",
        "cdn-cgi/challenge-platform",
        "just a moment",
        "cf-turnstile",
        "cf_chl_opt",
    ]

    def __init__(self) -> None:
        self.settings = Settings()
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )

    def _validate_response(self, text: str) -> bool:
        """Check for Cloudflare challenge pages and CAPTCHA indicators."""
        lower = text.lower()
        for marker in self._CF_CHALLENGE_MARKERS:
            if marker in lower:
                logger.warning(
                    "Cloudflare challenge detected (marker: '%s')",
                    marker,
                )
                return False

        # Skip the keyword scan on real product pages to avoid
        # false positives from footer text
        has_body_content = "<body" in lower and len(text) > 5000
        if not has_body_content:
            for keyword in self.settings.CAPTCHA_KEYWORDS:
                if keyword in lower:
                    logger.warning(
                        "CAPTCHA keyword '%s' detected", keyword,
                    )
                    return False
        return True

    def _headers(self, url: str) -> dict[str, str]:
        parsed = urlparse(url)
        return {
            **self.settings.DEFAULT_HEADERS,
            "Referer": f"{parsed.scheme}://{parsed.netloc}/",
        }

    def _fetch_html(self, url: str, timeout: float) -> str:
        """GET with retries, falling back to cloudscraper.

        Raises :class:`FetchTimeout` when every attempt timed out and
        :class:`FetchError` for any other exhausted failure.
        """
        headers = self._headers(url)
        timed_out = False
        for attempt in range(self.settings.MAX_RETRIES):
            try:
                resp = self.session.get(
                    url, headers=headers, timeout=timeout,
                )
                if resp.status_code == 200:
                    if self._validate_response(resp.text):
                        return str(resp.text)
                else:
                    logger.warning(
                        "HTTP %d on attempt %d for %s",
                        resp.status_code,
                        attempt + 1,
                        url,
                    )
            except curl_requests.exceptions.Timeout as exc:
                timed_out = True
                logger.warning(
                    "Timeout on attempt %d for %s: %s",
                    attempt + 1,
                    url,
                    exc,
                )
            except Exception as exc:
                logger.warning(
                    "Request error on attempt %d for %s: %s",
                    attempt + 1,
                    url,
                    exc,
                    exc_info=True,
                )
            time.sleep(self.settings.REQUEST_DELAY * (attempt + 1))

        logger.info(
            "curl_cffi exhausted for %s, falling back to cloudscraper",
            url,
        )
        try:
            _cs: Any = cloudscraper
            scraper: Any = _cs.create_scraper()
            fallback_resp: Any = scraper.get(
                url, headers=headers, timeout=timeout,
            )
            if fallback_resp.status_code == 200:
                return str(fallback_resp.text)
            logger.warning(
                "cloudscraper got HTTP %d for %s",
                fallback_resp.status_code,
                url,
            )
        except Exception as exc:
            logger.error(
                "cloudscraper fallback also failed for %s: %s",
                url,
                exc,
                exc_info=True,
            )

        if timed_out:
            msg = f"timed out fetching {url}"
            raise FetchTimeout(msg)
        msg = f"could not fetch {url}"
        raise FetchError(msg)

    # ── PageFetcher contract ─────────────────────────────

    async def load(self, url: str, timeout: float) -> HtmlDocument:
        html = await asyncio.to_thread(self._fetch_html, url, timeout)
        return HtmlDocument(url=url, soup=BeautifulSoup(html, "lxml"))

    async def wait_for_selector(
        self, handle: HtmlDocument, selector: str, timeout: float,
    ) -> None:
        if handle.soup.select_one(selector) is None:
            msg = f"{selector} not present in {handle.url}"
            raise FetchTimeout(msg)

    async def wait_for_selector_hidden(
        self, handle: HtmlDocument, selector: str, timeout: float,
    ) -> None:
        # Static markup never changes; a present widget is treated as
        # closed because nothing can be done to dismiss it.
        return None

    async def wait_for_predicate(
        self, handle: HtmlDocument, predicate: Predicate, timeout: float,
    ) -> None:
        if not predicate(handle.soup):
            msg = f"condition not met in static page {handle.url}"
            raise FetchTimeout(msg)

    async def extract(
        self, handle: HtmlDocument, extractor: Extractor[T],
    ) -> T:
        return extractor(handle.soup)

    async def type_text(
        self,
        handle: HtmlDocument,
        selector: str,
        text: str,
        timeout: float,
    ) -> None:
        msg = "static pages cannot be typed into"
        raise FetchError(msg)

    async def click(
        self,
        handle: HtmlDocument,
        selector: str,
        index: int,
        timeout: float,
    ) -> None:
        msg = "static pages cannot be clicked"
        raise FetchError(msg)

    async def close(self, handle: HtmlDocument) -> None:
        return None

    async def shutdown(self) -> None:
        self.session.close()
