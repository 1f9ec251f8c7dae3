"""Shared fixtures: an in-memory site served through the page session interface."""

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pytest

from shopcrawl.browser_renderer import RenderResult
from shopcrawl.config import CrawlConfig
from shopcrawl.constants import CONCURRENCY_SEQUENTIAL
from shopcrawl.errors import NetworkError, SessionError
from shopcrawl.models import PageSignals


PRODUCT_SIGNALS = PageSignals(has_price=True, has_add_to_cart=True, has_title=True)


def links_html(*hrefs: str) -> str:
    anchors = "".join(f'<a href="{href}">{href}</a>' for href in hrefs)
    return f"<html><body>{anchors}</body></html>"


@dataclass
class FakePage:
    html: str = "<html><body></body></html>"
    status: int = 200
    error: Optional[Exception] = None
    signals: PageSignals = field(default_factory=PageSignals)
    # Document height after 0, 1, 2, ... scrolls; the last value repeats
    heights: List[int] = field(default_factory=lambda: [1000])
    overlay: Optional[str] = None
    # Navigations that time out before the page loads normally
    transient_failures: int = 0


class FakeSite:
    """URL -> FakePage map shared by every session of a fake renderer."""

    def __init__(self):
        self.pages: Dict[str, FakePage] = {}

    def add(self, url: str, *hrefs: str, **kwargs) -> FakePage:
        kwargs.setdefault("html", links_html(*hrefs))
        page = FakePage(**kwargs)
        self.pages[url] = page
        return page


class FakeSession:
    """Page session double: navigation, content, scrolling, clicks and signals."""

    def __init__(self, site: FakeSite, domain: str, close_error: Optional[Exception] = None):
        self.site = site
        self.domain = domain
        self.visits: List[str] = []
        self.clicks: List[str] = []
        self.scroll_calls = 0
        self.signal_queries = 0
        self.closed = False
        self._close_error = close_error
        self._page: Optional[FakePage] = None
        self._scrolls = 0

    async def render(self, url: str) -> RenderResult:
        if self.closed:
            raise SessionError("session closed", url=url)
        self.visits.append(url)
        page = self.site.pages.get(url)
        if page is None:
            raise NetworkError(f"HTTP 404 for {url}", url=url, status_code=404)
        if page.transient_failures > 0:
            page.transient_failures -= 1
            raise NetworkError("Timed out during navigation", url=url)
        if page.error is not None:
            raise page.error
        if page.status >= 400:
            raise NetworkError(f"HTTP {page.status} for {url}", url=url, status_code=page.status)
        self._page = page
        self._scrolls = 0
        return RenderResult(url=url, final_url=url, html=page.html, status_code=page.status)

    async def content(self) -> str:
        return self._page.html if self._page else ""

    async def scroll_height(self) -> int:
        heights = self._page.heights if self._page else [0]
        return heights[min(self._scrolls, len(heights) - 1)]

    async def scroll_to_bottom(self) -> None:
        self._scrolls += 1
        self.scroll_calls += 1

    async def click_if_present(self, selector: str, timeout_ms: int) -> bool:
        self.clicks.append(selector)
        return self._page is not None and self._page.overlay == selector

    async def query_signals(self, selectors) -> PageSignals:
        self.signal_queries += 1
        return self._page.signals if self._page else PageSignals()

    async def close(self) -> None:
        self.closed = True
        if self._close_error is not None:
            raise self._close_error


class FakeRenderer:
    """Renderer double with the start/stop/open_session surface of BrowserRenderer."""

    def __init__(
        self,
        site: FakeSite,
        start_error: Optional[Exception] = None,
        stop_error: Optional[Exception] = None,
        close_errors: Optional[Dict[str, Exception]] = None,
    ):
        self.site = site
        self.start_error = start_error
        self.stop_error = stop_error
        self.close_errors = close_errors or {}
        self.started = False
        self.stopped = False
        self.sessions: List[FakeSession] = []

    async def start(self) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.started = True

    async def stop(self) -> None:
        self.stopped = True
        if self.stop_error is not None:
            raise self.stop_error

    @asynccontextmanager
    async def open_session(self, domain: str):
        session = FakeSession(self.site, domain, close_error=self.close_errors.get(domain))
        self.sessions.append(session)
        try:
            yield session
        finally:
            await session.close()


async def no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def site():
    return FakeSite()


@pytest.fixture
def fast_config():
    """Config with every wait removed."""
    return CrawlConfig(
        pacing_enabled=False,
        scroll_settle_seconds=0.0,
        dismiss_probe_timeout_ms=10,
        dismiss_budget_seconds=1.0,
        retry_delay=0.0,
        concurrency=CONCURRENCY_SEQUENTIAL,
    )
