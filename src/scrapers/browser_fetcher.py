# src/scrapers/browser_fetcher.py

"""Headless Chromium page fetcher built on Playwright."""

import asyncio
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from bs4 import BeautifulSoup
from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    Route,
    async_playwright,
)
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from src.config.settings import Settings
from src.core.errors import FetchError, FetchTimeout
from src.scrapers.page_fetcher import Extractor, PageFetcher, Predicate, T

logger = logging.getLogger("stockwatch.browser")


@dataclass
class BrowserDocument:
    """A loaded page together with the context that owns it."""

    url: str
    context: BrowserContext
    page: Page


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    """Re-raise Playwright failures as fetcher errors."""
    try:
        yield
    except PlaywrightTimeoutError as exc:
        msg = f"timed out while {action}"
        raise FetchTimeout(msg) from exc
    except PlaywrightError as exc:
        msg = f"browser error while {action}: {exc.message}"
        raise FetchError(msg) from exc


def _ms(seconds: float) -> float:
    return seconds * 1000


class PlaywrightPageFetcher(PageFetcher):
    """Renders product pages in headless Chromium.

    One browser process is launched lazily and shared; every
    :meth:`load` gets its own browser context, so probes never share
    cookies or a delivery location, and :meth:`close` discards it.
    """

    interactive = True

    def __init__(self, headless: bool | None = None) -> None:
        self.settings = Settings()
        self._headless = (
            self.settings.HEADLESS if headless is None else headless
        )
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._start_lock = asyncio.Lock()

    async def _ensure_browser(self) -> Browser:
        async with self._start_lock:
            if self._browser is not None and self._browser.is_connected():
                return self._browser
            with _translate_errors("launching chromium"):
                if self._playwright is None:
                    self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=self._headless,
                    args=self.settings.BROWSER_ARGS,
                )
            logger.info(
                "Chromium launched (headless=%s)", self._headless,
            )
            return self._browser

    async def _handle_route(self, route: Route) -> None:
        """Skip heavy assets that never affect stock signals."""
        if (
            route.request.resource_type
            in self.settings.BLOCKED_RESOURCE_TYPES
        ):
            await route.abort()
        else:
            await route.continue_()

    async def _soup(self, handle: BrowserDocument) -> BeautifulSoup:
        with _translate_errors("reading page content"):
            html = await handle.page.content()
        return BeautifulSoup(html, "lxml")

    # ── PageFetcher contract ─────────────────────────────

    async def load(self, url: str, timeout: float) -> BrowserDocument:
        browser = await self._ensure_browser()
        with _translate_errors("opening a browser context"):
            context = await browser.new_context(
                user_agent=self.settings.USER_AGENT,
                viewport={"width": 1280, "height": 900},
                extra_http_headers={
                    "Accept-Language": self.settings.DEFAULT_HEADERS[
                        "Accept-Language"
                    ],
                },
            )
        try:
            with _translate_errors(f"loading {url}"):
                await context.route("**/*", self._handle_route)
                page = await context.new_page()
                await page.goto(
                    url,
                    timeout=_ms(timeout),
                    wait_until="domcontentloaded",
                )
        except FetchError:
            await self._close_context(url, context)
            raise
        logger.debug("Loaded %s", url)
        return BrowserDocument(url=url, context=context, page=page)

    async def wait_for_selector(
        self, handle: BrowserDocument, selector: str, timeout: float,
    ) -> None:
        with _translate_errors(f"waiting for {selector}"):
            await handle.page.wait_for_selector(
                selector, state="attached", timeout=_ms(timeout),
            )

    async def wait_for_selector_hidden(
        self, handle: BrowserDocument, selector: str, timeout: float,
    ) -> None:
        with _translate_errors(f"waiting for {selector} to close"):
            await handle.page.wait_for_selector(
                selector, state="hidden", timeout=_ms(timeout),
            )

    async def wait_for_predicate(
        self,
        handle: BrowserDocument,
        predicate: Predicate,
        timeout: float,
    ) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            if predicate(await self._soup(handle)):
                return
            if loop.time() >= deadline:
                msg = f"condition not met within {timeout:.0f}s"
                raise FetchTimeout(msg)
            await asyncio.sleep(self.settings.PREDICATE_POLL_INTERVAL)

    async def extract(
        self, handle: BrowserDocument, extractor: Extractor[T],
    ) -> T:
        return extractor(await self._soup(handle))

    async def type_text(
        self,
        handle: BrowserDocument,
        selector: str,
        text: str,
        timeout: float,
    ) -> None:
        with _translate_errors(f"typing into {selector}"):
            await handle.page.fill(selector, text, timeout=_ms(timeout))

    async def click(
        self,
        handle: BrowserDocument,
        selector: str,
        index: int,
        timeout: float,
    ) -> None:
        with _translate_errors(f"clicking {selector}[{index}]"):
            await handle.page.locator(selector).nth(index).click(
                timeout=_ms(timeout),
            )

    async def close(self, handle: BrowserDocument) -> None:
        await self._close_context(handle.url, handle.context)

    @staticmethod
    async def _close_context(url: str, context: BrowserContext) -> None:
        try:
            await context.close()
        except PlaywrightError as exc:
            logger.debug("Context close failed for %s: %s", url, exc)

    async def shutdown(self) -> None:
        if self._browser is not None:
            try:
                await self._browser.close()
            except PlaywrightError as exc:
                logger.debug("Browser close failed: %s", exc)
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
        logger.info("Chromium shut down")
