"""Result aggregation: one write-once slot per configured domain."""

import logging
from typing import List, Optional, Sequence

from shopcrawl.models import CrawlReport, CrawlTarget, DomainOutcome

logger = logging.getLogger(__name__)


class ResultAggregator:
    """Collects sealed DomainOutcomes into a CrawlReport in configuration order.

    Each domain's crawl writes only its own slot, so concurrent crawls never
    touch the same entry and no locking is needed.
    """

    def __init__(self, targets: Sequence[CrawlTarget]):
        self._targets = list(targets)
        self._slots: List[Optional[DomainOutcome]] = [None] * len(self._targets)

    def submit(self, index: int, outcome: DomainOutcome) -> None:
        """
        Store the sealed outcome for the target at `index`.

        Raises:
            ValueError: Outcome is unsealed or belongs to another domain
            RuntimeError: The slot was already written
        """
        target = self._targets[index]
        if not outcome.sealed:
            raise ValueError(f"Outcome for {outcome.domain} is not sealed")
        if outcome.domain != target.domain:
            raise ValueError(f"Outcome for {outcome.domain} submitted to slot of {target.domain}")
        if self._slots[index] is not None:
            raise RuntimeError(f"Outcome for {target.domain} (slot {index}) already submitted")
        self._slots[index] = outcome

    def is_filled(self, index: int) -> bool:
        return self._slots[index] is not None

    @property
    def complete(self) -> bool:
        return all(slot is not None for slot in self._slots)

    def build(self) -> CrawlReport:
        """
        Assemble the report. An empty slot becomes a crashed outcome so
        every configured domain is always represented exactly once.
        """
        outcomes = []
        for target, slot in zip(self._targets, self._slots):
            if slot is None:
                logger.error(f"No outcome reported for {target.domain}; marking it as crashed")
                slot = DomainOutcome.crashed(target, RuntimeError("worker produced no outcome"))
            outcomes.append(slot)
        return CrawlReport(outcomes=tuple(outcomes))
