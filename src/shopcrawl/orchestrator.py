"""
Crawl orchestration across domains.

The orchestrator hands every CrawlTarget to its own DomainCrawlWorker and
guarantees exactly one sealed DomainOutcome per target:

- sequential mode crawls domains one after another, with an optional
  cooldown in between
- parallel mode runs up to `parallelism` domains at once

Renderer isolation is either "shared" (one browser for the run, one
isolated context per domain) or "per_domain" (a fresh browser per domain).
A worker that dies is converted into a crashed outcome; a renderer that
fails to close is logged and never takes sibling domains down with it.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, List, Optional, Sequence

from shopcrawl.aggregator import ResultAggregator
from shopcrawl.browser_config import BrowserConfig
from shopcrawl.browser_renderer import BrowserRenderer
from shopcrawl.config import CrawlConfig
from shopcrawl.constants import ISOLATION_PER_DOMAIN
from shopcrawl.models import CrawlReport, CrawlTarget, DomainOutcome
from shopcrawl.worker import DomainCrawlWorker

logger = logging.getLogger(__name__)


class CrawlOrchestrator:
    """Runs one DomainCrawlWorker per target under the configured concurrency policy."""

    def __init__(
        self,
        config: Optional[CrawlConfig] = None,
        browser_config: Optional[BrowserConfig] = None,
        renderer_factory: Optional[Callable[[], BrowserRenderer]] = None,
        worker_factory: Optional[Callable[..., DomainCrawlWorker]] = None,
    ):
        """
        Args:
            config: Crawl configuration (validated on construction)
            browser_config: Options for the default Playwright renderer
            renderer_factory: Builds a renderer exposing start(), stop() and
                open_session(domain); defaults to BrowserRenderer
            worker_factory: Builds a worker from (target, session, config)
        """
        self.config = (config or CrawlConfig()).validate()
        self.browser_config = browser_config or BrowserConfig()
        self._renderer_factory = renderer_factory or (lambda: BrowserRenderer(self.browser_config))
        self._worker_factory = worker_factory or DomainCrawlWorker
        self.release_errors: List[str] = []

    @asynccontextmanager
    async def _acquire_renderer(self, label: str) -> AsyncIterator[BrowserRenderer]:
        """Start a renderer and stop it on every exit path, logging stop failures."""
        renderer = self._renderer_factory()
        await renderer.start()
        try:
            yield renderer
        finally:
            try:
                await renderer.stop()
            except Exception as e:
                message = f"Failed to release renderer ({label}): {e}"
                logger.error(message)
                self.release_errors.append(message)

    async def run(self, targets: Sequence[CrawlTarget]) -> CrawlReport:
        """
        Crawl every target and return the report.

        Args:
            targets: Domains to crawl, in output order

        Returns:
            CrawlReport with one sealed outcome per target, in target order
        """
        targets = list(targets)
        aggregator = ResultAggregator(targets)
        self.release_errors = []

        mode = "sequential" if self.config.is_sequential else f"parallel x{self.config.parallelism}"
        logger.info(
            f"Crawling {len(targets)} domains ({mode}, isolation={self.config.isolation})"
        )

        if self.config.isolation == ISOLATION_PER_DOMAIN:
            await self._dispatch(targets, aggregator, None)
        else:
            try:
                async with self._acquire_renderer("shared") as renderer:
                    await self._dispatch(targets, aggregator, renderer)
            except Exception as e:
                # Only reachable when the shared browser fails to launch
                logger.error(f"Shared renderer unavailable: {e}")
                for index, target in enumerate(targets):
                    if not aggregator.is_filled(index):
                        aggregator.submit(index, DomainOutcome.crashed(target, e))

        report = aggregator.build()
        logger.info(
            f"Crawl finished: {sum(len(o.confirmed) for o in report.outcomes)} confirmed, "
            f"{sum(len(o.failed) for o in report.outcomes)} failed across {len(targets)} domains"
        )
        return report

    async def _dispatch(
        self,
        targets: List[CrawlTarget],
        aggregator: ResultAggregator,
        shared_renderer: Optional[BrowserRenderer],
    ) -> None:
        if self.config.is_sequential:
            for index, target in enumerate(targets):
                if index > 0 and self.config.domain_cooldown_seconds > 0:
                    logger.info(f"Cooling down {self.config.domain_cooldown_seconds}s before {target.domain}")
                    await asyncio.sleep(self.config.domain_cooldown_seconds)
                await self._crawl_target(index, target, aggregator, shared_renderer)
            return

        semaphore = asyncio.Semaphore(self.config.parallelism)

        async def bounded(index: int, target: CrawlTarget) -> None:
            async with semaphore:
                await self._crawl_target(index, target, aggregator, shared_renderer)

        await asyncio.gather(*(bounded(i, t) for i, t in enumerate(targets)))

    async def _crawl_target(
        self,
        index: int,
        target: CrawlTarget,
        aggregator: ResultAggregator,
        shared_renderer: Optional[BrowserRenderer],
    ) -> None:
        """Crawl one domain and write its slot. Never raises on worker failure."""
        worker = None

        async def crawl(renderer: BrowserRenderer) -> None:
            nonlocal worker
            async with renderer.open_session(target.domain) as session:
                worker = self._worker_factory(target, session, self.config)
                await worker.run()

        try:
            if shared_renderer is not None:
                await crawl(shared_renderer)
            else:
                async with self._acquire_renderer(target.domain) as renderer:
                    await crawl(renderer)
            outcome = worker.outcome
        except Exception as e:
            if worker is not None and worker.outcome.sealed:
                # Crawl finished; only closing its session failed
                message = f"Failed to release session for {target.domain}: {e}"
                logger.error(message)
                self.release_errors.append(message)
                outcome = worker.outcome
            else:
                logger.error(f"Worker for {target.domain} crashed: {type(e).__name__}: {e}")
                outcome = DomainOutcome.crashed(
                    target, e, worker.outcome if worker is not None else None
                )

        aggregator.submit(index, outcome)
