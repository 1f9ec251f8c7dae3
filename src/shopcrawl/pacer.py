"""
Anti-detection pacing and page settling.

The pacer owns everything that happens around a navigation but is not the
navigation itself:

- a randomized wait before each navigation (via TimingEvasion)
- best-effort dismissal of consent banners and popups
- scroll-triggered lazy-load expansion

Dismissal is an ordered list of probes. Each probe waits a short while for
its selector; the first one that clicks ends the loop. Finding nothing is
normal and not an error. The whole loop is additionally capped by an
overall time budget.

Lazy-load expansion scrolls to the bottom, waits a settle interval and
compares document height before and after. It stops at the first attempt
that does not grow the page, or after max_scroll_attempts.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from shopcrawl.config import CrawlConfig
from shopcrawl.constants import POST_DISMISS_DELAY_SECONDS
from shopcrawl.infrastructure.timing_evasion import TimingEvasion

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class SettleReport:
    """What settling did to a page."""

    dismissed_selector: Optional[str] = None
    scroll_attempts: int = 0
    final_height: int = 0


class AntiDetectionPacer:
    """Paces navigations and settles rendered pages for one domain."""

    def __init__(
        self,
        config: CrawlConfig,
        timing: Optional[TimingEvasion] = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            config: Crawl configuration (delays, probes, scroll policy)
            timing: Delay source; built from config when omitted
            sleep: Awaitable sleep used for settle waits
            clock: Monotonic clock used for the dismissal budget
        """
        self.config = config
        self.timing = timing or TimingEvasion(
            config=config.build_timing_config(),
            enabled=config.pacing_enabled,
        )
        self._sleep = sleep
        self._clock = clock

    async def pace(self) -> float:
        """Wait before a navigation. Returns seconds waited (0.0 when disabled)."""
        return await self.timing.wait_between_pages()

    async def dismiss_overlays(self, session) -> Optional[str]:
        """
        Try dismissal selectors in priority order until one clicks.

        Args:
            session: Page session exposing click_if_present()

        Returns:
            The selector that was clicked, or None if nothing matched

        Raises:
            SessionError: The page went away while probing
        """
        budget = self.config.dismiss_budget_seconds
        started = self._clock()

        for selector in self.config.dismiss_selectors:
            remaining = budget - (self._clock() - started)
            if remaining <= 0:
                logger.debug("Dismissal budget spent without a match")
                break

            timeout_ms = int(min(self.config.dismiss_probe_timeout_ms, remaining * 1000))
            if await session.click_if_present(selector, timeout_ms):
                logger.info(f"Dismissed overlay via {selector!r}")
                await self._sleep(POST_DISMISS_DELAY_SECONDS)
                return selector

        return None

    async def expand_lazy_load(self, session) -> int:
        """
        Scroll to the bottom until the page stops growing.

        Args:
            session: Page session exposing scroll_height() and scroll_to_bottom()

        Returns:
            Number of scroll attempts made

        Raises:
            RenderError: Height could not be evaluated or scrolling threw
            SessionError: The page went away
        """
        attempts = 0
        height = await session.scroll_height()

        while attempts < self.config.max_scroll_attempts:
            attempts += 1
            await session.scroll_to_bottom()
            await self._sleep(self.config.scroll_settle_seconds)

            new_height = await session.scroll_height()
            logger.debug(f"Scroll attempt {attempts}: height {height} -> {new_height}")
            if new_height <= height:
                break
            height = new_height

        return attempts

    async def settle(self, session) -> SettleReport:
        """Dismiss overlays, then expand lazy-loaded content."""
        dismissed = await self.dismiss_overlays(session)
        attempts = await self.expand_lazy_load(session)
        return SettleReport(
            dismissed_selector=dismissed,
            scroll_attempts=attempts,
            final_height=await session.scroll_height(),
        )
