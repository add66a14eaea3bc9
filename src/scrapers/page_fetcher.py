# src/scrapers/page_fetcher.py

"""Abstract page fetcher consumed by the availability prober."""

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, TypeVar

from bs4 import BeautifulSoup

T = TypeVar("T")

Extractor = Callable[[BeautifulSoup], T]
Predicate = Callable[[BeautifulSoup], bool]


class PageFetcher(ABC):
    """Loads a product page and lets the prober interact with it.

    Handles returned by :meth:`load` are opaque to callers and must be
    released with :meth:`close`.  Extractors and predicates receive the
    current page content parsed with BeautifulSoup, so the prober's
    page reading is identical whichever fetcher renders the page.

    Every method may raise :class:`~src.core.errors.FetchError`;
    bounded waits raise :class:`~src.core.errors.FetchTimeout`.
    """

    #: Whether the fetcher can type and click (set a delivery location).
    interactive: bool = True

    @abstractmethod
    async def load(self, url: str, timeout: float) -> Any:
        """Open *url* in a fresh rendering context and return its handle."""
        ...

    @abstractmethod
    async def wait_for_selector(
        self, handle: Any, selector: str, timeout: float,
    ) -> None:
        """Wait until *selector* is present on the page."""
        ...

    @abstractmethod
    async def wait_for_selector_hidden(
        self, handle: Any, selector: str, timeout: float,
    ) -> None:
        """Wait until *selector* is absent or hidden."""
        ...

    @abstractmethod
    async def wait_for_predicate(
        self, handle: Any, predicate: Predicate, timeout: float,
    ) -> None:
        """Wait until *predicate* holds for the parsed page."""
        ...

    @abstractmethod
    async def extract(self, handle: Any, extractor: Extractor[T]) -> T:
        """Run *extractor* over the parsed page and return its result."""
        ...

    @abstractmethod
    async def type_text(
        self, handle: Any, selector: str, text: str, timeout: float,
    ) -> None:
        """Fill the input matched by *selector* with *text*."""
        ...

    @abstractmethod
    async def click(
        self, handle: Any, selector: str, index: int, timeout: float,
    ) -> None:
        """Click the *index*-th (0-based) element matching *selector*."""
        ...

    @abstractmethod
    async def close(self, handle: Any) -> None:
        """Tear down the rendering context behind *handle*."""
        ...

    async def shutdown(self) -> None:
        """Release process-wide resources (browsers, sessions)."""
        return None
