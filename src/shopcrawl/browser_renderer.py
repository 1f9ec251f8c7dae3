"""
Browser-based page renderer using Playwright.

BrowserRenderer owns the browser process; each crawled domain gets its own
PageSession (an isolated browser context holding a single page), so no two
domains ever share cookies, storage or a page object:

    async with BrowserRenderer(config) as renderer:
        async with renderer.open_session("example.com") as session:
            result = await session.render("https://example.com/")

Playwright failures are translated into the crawler's error taxonomy:
navigation problems become NetworkError, DOM evaluation problems become
RenderError, and a closed page/context/browser becomes SessionError.
"""
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from playwright.async_api import (
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from shopcrawl.browser_config import BrowserConfig
from shopcrawl.classifier import SignalSelectors
from shopcrawl.errors import CrawlError, NetworkError, RenderError, SessionError
from shopcrawl.models import PageSignals

logger = logging.getLogger(__name__)

# Substrings of Playwright messages meaning the session cannot be used again
_SESSION_CLOSED_MARKERS = (
    "has been closed",
    "target closed",
    "browser closed",
    "connection closed",
)

STEALTH_SCRIPT = """
    // Override webdriver property
    Object.defineProperty(navigator, 'webdriver', {
        get: () => undefined,
    });

    // Override plugins to look like a real browser
    Object.defineProperty(navigator, 'plugins', {
        get: () => [
            { name: 'Chrome PDF Plugin', filename: 'internal-pdf-viewer', description: 'Portable Document Format' },
            { name: 'Chrome PDF Viewer', filename: 'mhjfbmdgcfjbbpaeojofohoefgiehjai', description: '' },
            { name: 'Native Client', filename: 'internal-nacl-plugin', description: '' },
        ],
    });

    // Override languages
    Object.defineProperty(navigator, 'languages', {
        get: () => ['en-US', 'en'],
    });

    // Override chrome runtime
    window.chrome = {
        runtime: {},
    };
"""

SIGNALS_SCRIPT = """
    (groups) => {
        const present = (selector) => {
            try {
                return document.querySelector(selector) !== null;
            } catch (e) {
                return false;  // Invalid selector for this engine
            }
        };
        const result = {};
        for (const [name, selectors] of Object.entries(groups)) {
            result[name] = selectors.some(present);
        }
        return result;
    }
"""

SCROLL_HEIGHT_SCRIPT = "() => document.body ? document.body.scrollHeight : 0"
SCROLL_TO_BOTTOM_SCRIPT = "() => window.scrollTo(0, document.body ? document.body.scrollHeight : 0)"


def _is_session_closed(error: Exception) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in _SESSION_CLOSED_MARKERS)


def _translate_error(
    error: Exception,
    url: Optional[str],
    action: str,
    default: type = RenderError,
) -> CrawlError:
    """Map a Playwright exception onto the crawler error taxonomy."""
    if _is_session_closed(error):
        return SessionError(f"Renderer session closed during {action}: {error}", url=url)
    if isinstance(error, PlaywrightTimeoutError):
        return default(f"Timed out during {action}: {error}", url=url)
    return default(f"{action} failed: {error}", url=url)


@dataclass
class RenderResult:
    """Result of navigating to a URL."""

    url: str
    final_url: str
    html: str
    status_code: int = 0
    load_time: float = 0.0


class PageSession:
    """One domain's isolated browser context and page.

    Exposes only what the crawl pipeline needs: navigation, fresh content,
    scroll-height probing, best-effort selector clicks and product signal
    queries.
    """

    def __init__(self, domain: str, context, page, config: BrowserConfig):
        self.domain = domain
        self._context = context
        self._page = page
        self._config = config
        self._closed = False

    @property
    def url(self) -> str:
        return self._page.url

    def _ensure_open(self) -> None:
        if self._closed:
            raise SessionError(f"Session for {self.domain} is closed")

    async def render(self, url: str) -> RenderResult:
        """
        Navigate to a URL and return the rendered markup.

        Args:
            url: URL to load

        Returns:
            RenderResult with the post-navigation HTML

        Raises:
            NetworkError: Navigation failed, timed out, or returned status >= 400
            SessionError: The page or browser was closed
        """
        self._ensure_open()
        start_time = time.time()

        try:
            response = await self._page.goto(
                url,
                wait_until=self._config.wait_until,
                timeout=self._config.timeout,
            )
        except PlaywrightError as e:
            raise _translate_error(e, url, "navigation", default=NetworkError) from e

        status_code = response.status if response else 0
        if status_code >= 400:
            raise NetworkError(f"HTTP {status_code} for {url}", url=url, status_code=status_code)

        html = await self.content()
        load_time = time.time() - start_time

        logger.debug(f"Rendered {url} (status={status_code}, time={load_time:.2f}s)")

        return RenderResult(
            url=url,
            final_url=self._page.url or url,
            html=html,
            status_code=status_code,
            load_time=load_time,
        )

    async def content(self) -> str:
        """Current DOM serialized as HTML."""
        self._ensure_open()
        try:
            return await self._page.content()
        except PlaywrightError as e:
            raise _translate_error(e, self._page.url, "content read") from e

    async def scroll_height(self) -> int:
        """Document scroll height in pixels."""
        self._ensure_open()
        try:
            return int(await self._page.evaluate(SCROLL_HEIGHT_SCRIPT) or 0)
        except PlaywrightError as e:
            raise _translate_error(e, self._page.url, "scroll height evaluation") from e

    async def scroll_to_bottom(self) -> None:
        self._ensure_open()
        try:
            await self._page.evaluate(SCROLL_TO_BOTTOM_SCRIPT)
        except PlaywrightError as e:
            raise _translate_error(e, self._page.url, "scroll") from e

    async def click_if_present(self, selector: str, timeout_ms: int) -> bool:
        """
        Click the first visible element matching a selector.

        Args:
            selector: CSS or Playwright selector
            timeout_ms: How long to wait for the element to become visible

        Returns:
            True if an element was clicked, False if none showed up or the
            click did not go through

        Raises:
            SessionError: The page or browser was closed
        """
        self._ensure_open()
        try:
            element = await self._page.wait_for_selector(
                selector, state="visible", timeout=timeout_ms
            )
            if element is None:
                return False
            await element.click(timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            return False
        except PlaywrightError as e:
            if _is_session_closed(e):
                raise SessionError(f"Renderer session closed during click: {e}", url=self._page.url) from e
            logger.debug(f"Click on {selector!r} failed: {e}")
            return False

    async def query_signals(self, selectors: SignalSelectors) -> PageSignals:
        """Read product-page signals from the current DOM.

        Raises:
            RenderError: The evaluation threw
            SessionError: The page or browser was closed
        """
        self._ensure_open()
        try:
            raw = await self._page.evaluate(SIGNALS_SCRIPT, selectors.as_query())
        except PlaywrightError as e:
            raise _translate_error(e, self._page.url, "signal query") from e
        return PageSignals.from_dict(raw or {})

    async def close(self) -> None:
        """Close the page and its context. Errors propagate to the caller."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._page.close()
        finally:
            await self._context.close()


class BrowserRenderer:
    """
    Playwright browser lifecycle plus per-domain session factory.

    Designed to be used as an async context manager; the browser is closed
    on every exit path.
    """

    def __init__(self, config: Optional[BrowserConfig] = None):
        """
        Args:
            config: BrowserConfig instance with renderer settings
        """
        self._config = config or BrowserConfig()
        self._playwright = None
        self._browser = None

        logger.debug(f"BrowserRenderer initialized with config: {self._config}")

    @property
    def is_running(self) -> bool:
        return self._browser is not None

    async def __aenter__(self) -> "BrowserRenderer":
        """Launch the browser."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    async def start(self) -> None:
        if self._browser:
            return

        logger.info(f"Launching {self._config.browser_type} browser (headless={self._config.headless})")

        self._playwright = await async_playwright().start()
        browser_launcher = getattr(self._playwright, self._config.browser_type)

        launch_options = {"headless": self._config.headless}
        if self._config.launch_args and self._config.browser_type == "chromium":
            launch_options["args"] = self._config.launch_args

        try:
            self._browser = await browser_launcher.launch(**launch_options)
        except Exception:
            await self._playwright.stop()
            self._playwright = None
            raise

        logger.info("Browser launched successfully")

    async def stop(self) -> None:
        """Close the browser and stop Playwright. Both are attempted even if the first fails."""
        try:
            if self._browser:
                logger.info("Closing browser")
                await self._browser.close()
        finally:
            self._browser = None
            if self._playwright:
                await self._playwright.stop()
                self._playwright = None

    async def _create_session(self, domain: str) -> PageSession:
        if not self._browser:
            raise SessionError(
                "Browser is not running. Use BrowserRenderer as an async context manager: "
                "async with BrowserRenderer(config) as renderer:"
            )

        try:
            context = await self._browser.new_context(
                viewport=self._config.viewport,
                user_agent=self._config.get_user_agent(),
                locale=self._config.locale,
                java_script_enabled=True,
                extra_http_headers=self._config.extra_headers,
            )
        except PlaywrightError as e:
            raise SessionError(f"Could not create browser context for {domain}: {e}") from e

        try:
            if self._config.stealth_mode:
                await context.add_init_script(STEALTH_SCRIPT)

            context.set_default_timeout(self._config.timeout)
            page = await context.new_page()

            if self._config.block_resources:
                blocked = set(self._config.block_resources)

                async def _block(route):
                    if route.request.resource_type in blocked:
                        await route.abort()
                    else:
                        await route.continue_()

                await page.route("**/*", _block)

            if self._config.capture_console:
                page.on("console", lambda msg: (
                    logger.debug(f"Console {msg.type} from {domain}: {msg.text}")
                    if msg.type in ("error", "warning") else None
                ))
                page.on("pageerror", lambda err: logger.debug(f"Page error for {domain}: {err}"))
        except PlaywrightError as e:
            await context.close()
            raise SessionError(f"Could not open page for {domain}: {e}") from e

        return PageSession(domain, context, page, self._config)

    @asynccontextmanager
    async def open_session(self, domain: str) -> AsyncIterator[PageSession]:
        """
        Open an isolated context + page for one domain.

        The session is closed when the block exits, including on exceptions.
        A close failure is logged and re-raised unless another exception is
        already propagating.
        """
        session = await self._create_session(domain)
        try:
            yield session
        except BaseException:
            try:
                await session.close()
            except Exception as close_error:
                logger.error(f"Failed to release browser session for {domain}: {close_error}")
            raise

        try:
            await session.close()
        except Exception as e:
            logger.error(f"Failed to release browser session for {domain}: {e}")
            raise
