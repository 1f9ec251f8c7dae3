"""
Domain crawl worker.

One worker crawls one domain breadth-first through a single page session.
It owns the domain's Frontier and DomainOutcome outright; nothing else
reads or writes them while the worker runs.

Worker states:

    IDLE -> RUNNING -> DRAINING -> TERMINATED

Each dequeued URL runs through a fixed pipeline of stages:

    FETCH -> SETTLE -> EXTRACT -> CLASSIFY

Every stage returns a StageResult. A failed stage short-circuits the rest
of the pipeline and the URL is recorded as failed; the worker then moves
on to the next frontier entry. Only SessionError (the page itself is gone)
escapes run() and ends the domain's crawl.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

from shopcrawl.classifier import ProductClassifier
from shopcrawl.config import CrawlConfig
from shopcrawl.errors import NetworkError, SessionError
from shopcrawl.frontier import Frontier
from shopcrawl.link_extractor import LinkExtractor
from shopcrawl.logging_config import domain_logger
from shopcrawl.models import (
    ClassificationResult,
    CrawlTarget,
    DomainOutcome,
    FrontierEntry,
    OutcomeStatus,
)
from shopcrawl.pacer import AntiDetectionPacer

logger = logging.getLogger(__name__)


class WorkerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    TERMINATED = "terminated"


class CrawlStage(str, Enum):
    FETCH = "fetch"
    SETTLE = "settle"
    EXTRACT = "extract"
    CLASSIFY = "classify"


@dataclass
class StageResult:
    """Outcome of one pipeline stage for one URL."""

    stage: CrawlStage
    ok: bool
    value: Any = None
    error: Optional[Exception] = None

    @classmethod
    def success(cls, stage: CrawlStage, value: Any = None) -> "StageResult":
        return cls(stage=stage, ok=True, value=value)

    @classmethod
    def failure(cls, stage: CrawlStage, error: Exception) -> "StageResult":
        return cls(stage=stage, ok=False, error=error)


@dataclass
class ClassifySummary:
    """Per-page tally of the CLASSIFY stage."""

    confirmed: List[str] = field(default_factory=list)
    ambiguous: List[str] = field(default_factory=list)
    enqueued: int = 0


def _is_retryable(error: NetworkError) -> bool:
    status = error.status_code
    return status is None or status == 429 or status >= 500


class DomainCrawlWorker:
    """Breadth-first product discovery for a single domain."""

    def __init__(
        self,
        target: CrawlTarget,
        session,
        config: CrawlConfig,
        classifier: Optional[ProductClassifier] = None,
        pacer: Optional[AntiDetectionPacer] = None,
        extractor: Optional[LinkExtractor] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            target: Domain and base URL to crawl
            session: Page session for this domain (render/content/scroll/click/query_signals)
            config: Crawl configuration
            classifier: Product classifier; built from config when omitted
            pacer: Pacer; built from config when omitted
            extractor: Link extractor; built from config when omitted
            clock: Monotonic clock used for the time budget
            sleep: Awaitable sleep used between navigation retries
        """
        self.target = target
        self.session = session
        self.config = config
        self.classifier = classifier or ProductClassifier(
            patterns=config.product_patterns,
            verify_content=config.verify_content,
            signal_selectors=config.build_signal_selectors(),
        )
        self.pacer = pacer or AntiDetectionPacer(config)
        self.extractor = extractor or LinkExtractor(
            max_links_per_page=config.max_links_per_page,
            skip_non_pages=config.skip_non_pages,
        )
        self._clock = clock
        self._sleep = sleep
        self.log = domain_logger(logger, target.domain)

        self.state = WorkerState.IDLE
        self.frontier = Frontier(max_depth=config.max_depth)
        self.outcome = DomainOutcome(domain=target.domain)

        # Product candidates already classified, so each is handled once
        self._candidates = set()
        self._started_at: Optional[float] = None

    def _transition(self, state: WorkerState) -> None:
        self.log.debug(f"{self.state.value} -> {state.value}")
        self.state = state

    # --- Budgets ---

    def _elapsed(self) -> float:
        if self._started_at is None:
            return 0.0
        return self._clock() - self._started_at

    def _remaining_seconds(self) -> Optional[float]:
        """Time left in the duration budget, or None when there is none."""
        max_duration = self.config.max_duration_seconds
        if max_duration is None:
            return None
        return max_duration - self._elapsed()

    def _budget_exhausted(self) -> bool:
        max_pages = self.config.max_pages_per_domain
        if max_pages is not None and self.outcome.pages_fetched >= max_pages:
            return True
        remaining = self._remaining_seconds()
        return remaining is not None and remaining <= 0

    def _drain_for_budget(self) -> OutcomeStatus:
        dropped = self.frontier.discard()
        self.log.warning(
            f"Budget exhausted after {self.outcome.pages_fetched} pages, "
            f"{self._elapsed():.1f}s; discarding {dropped} queued URLs"
        )
        return OutcomeStatus.BUDGET_EXHAUSTED

    # --- Lifecycle ---

    async def run(self) -> DomainOutcome:
        """
        Crawl the domain until the frontier empties or a budget runs out.

        Returns:
            The sealed DomainOutcome

        Raises:
            SessionError: The page session became unusable. The outcome is
                left unsealed for the caller to convert.
        """
        if self.state is not WorkerState.IDLE:
            raise RuntimeError(f"Worker for {self.target.domain} has already run")

        self._transition(WorkerState.RUNNING)
        self._started_at = self._clock()
        self.frontier.enqueue(self.target.base_url, 0)
        status = OutcomeStatus.COMPLETED

        self.log.info(f"Starting crawl from {self.target.base_url}")

        try:
            while True:
                if self._budget_exhausted():
                    status = self._drain_for_budget()
                    break

                entry = self.frontier.dequeue()
                if entry is None:
                    break

                remaining = self._remaining_seconds()
                if remaining is None:
                    await self._process_entry(entry)
                    continue

                # The time budget also bounds a single slow page
                try:
                    await asyncio.wait_for(self._process_entry(entry), timeout=max(remaining, 0.0))
                except asyncio.TimeoutError:
                    self.log.warning(f"Time budget ran out while processing {entry.url}")
                    self.outcome.record_failed(entry.url)
                    status = self._drain_for_budget()
                    break
        finally:
            self.outcome.elapsed_seconds = self._elapsed()

        self._transition(WorkerState.DRAINING)
        self.frontier.discard()
        self.outcome.seal(status)
        self._transition(WorkerState.TERMINATED)

        self.log.info(
            f"Finished: {len(self.outcome.confirmed)} confirmed, "
            f"{len(self.outcome.failed)} failed, {self.outcome.pages_fetched} pages "
            f"in {self.outcome.elapsed_seconds:.1f}s ({status.value})"
        )
        return self.outcome

    async def _process_entry(self, entry: FrontierEntry) -> None:
        self.log.info(f"Crawling {entry.url} (depth {entry.depth})")

        result = await self._run_pipeline(entry)
        if not result.ok:
            self.log.warning(
                f"{result.stage.value} failed for {entry.url}: {result.error}"
            )
            if self.outcome.record_failed(entry.url):
                self.log.info(f"Failed URL: {entry.url}")

    async def _run_pipeline(self, entry: FrontierEntry) -> StageResult:
        fetched = await self._stage(CrawlStage.FETCH, self._fetch, entry.url)
        if not fetched.ok:
            return fetched

        settled = await self._stage(CrawlStage.SETTLE, self.pacer.settle, self.session)
        if not settled.ok:
            return settled

        extracted = await self._stage(CrawlStage.EXTRACT, self._extract, fetched.value.final_url)
        if not extracted.ok:
            return extracted

        return await self._stage(CrawlStage.CLASSIFY, self._classify, extracted.value, entry.depth)

    async def _stage(self, stage: CrawlStage, func, *args) -> StageResult:
        """Run one stage, turning any non-session error into a failed StageResult."""
        try:
            return StageResult.success(stage, await func(*args))
        except SessionError:
            raise
        except Exception as e:
            return StageResult.failure(stage, e)

    # --- Stages ---

    async def _fetch(self, url: str):
        """Render a URL, retrying transient network errors with exponential backoff.

        Client errors (4xx other than 429) are not retried. SessionError is
        never caught here.
        """
        await self.pacer.pace()
        self.outcome.pages_fetched += 1

        max_retries = self.config.max_retries
        current_delay = self.config.retry_delay

        for attempt in range(max_retries + 1):
            try:
                return await self.session.render(url)
            except NetworkError as e:
                if not _is_retryable(e) or attempt >= max_retries:
                    raise
                self.log.warning(
                    f"Fetch failed for {url} "
                    f"(attempt {attempt + 1}/{max_retries + 1}): {e}. "
                    f"Retrying in {current_delay:.1f}s..."
                )
                await self._sleep(current_delay)
                current_delay *= self.config.backoff_factor

    async def _extract(self, page_url: str) -> List[str]:
        html = await self.session.content()
        extracted = self.extractor.extract(html, page_url, self.target.domain)
        self.log.debug(
            f"{len(extracted.links)} links on {page_url} "
            f"(malformed={extracted.malformed}, out_of_scope={extracted.out_of_scope}, "
            f"skipped={extracted.skipped}, truncated={extracted.truncated})"
        )
        return extracted.links

    async def _classify(self, links: List[str], depth: int) -> ClassifySummary:
        summary = ClassifySummary()
        candidates = []

        for link in links:
            if self.classifier.classify(link) is ClassificationResult.PRODUCT:
                if link not in self._candidates:
                    self._candidates.add(link)
                    candidates.append(link)
            elif self.frontier.enqueue(link, depth + 1):
                summary.enqueued += 1

        for url in candidates:
            verdict = await self._confirm(url)
            if verdict is ClassificationResult.PRODUCT:
                if self.outcome.record_confirmed(url):
                    summary.confirmed.append(url)
                    self.log.info(f"Found product page: {url}")
            else:
                if self.outcome.record_failed(url):
                    summary.ambiguous.append(url)
                    self.log.info(f"Ambiguous product candidate: {url}")

        return summary

    async def _confirm(self, url: str) -> ClassificationResult:
        """Content stage for a pattern hit; PRODUCT straight away when verification is off."""
        if not self.classifier.verify_content:
            return ClassificationResult.PRODUCT

        if self._budget_exhausted():
            self.log.debug(f"No budget left to verify {url}")
            return ClassificationResult.AMBIGUOUS

        try:
            await self._fetch(url)
            await self.pacer.dismiss_overlays(self.session)
            signals = await self.session.query_signals(self.classifier.signal_selectors)
        except SessionError:
            raise
        except Exception as e:
            self.log.warning(f"Verification failed for {url}: {e}")
            return ClassificationResult.AMBIGUOUS

        verdict = self.classifier.verify(signals)
        self.log.debug(f"Verified {url}: {verdict.value} ({signals})")
        return verdict
