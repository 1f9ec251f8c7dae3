"""Per-domain URL frontier for breadth-first crawling."""

import logging
from collections import deque
from typing import Deque, Optional, Set

from shopcrawl.models import FrontierEntry

logger = logging.getLogger(__name__)


class Frontier:
    """FIFO queue of (url, depth) entries plus the domain's visited set.

    A URL is admitted at most once for the lifetime of the frontier: the
    first discovery wins and later discoveries (at any depth) are ignored.
    Because entries are appended in discovery order and depth only grows by
    one per hop, dequeue order is breadth-first.

    The frontier is owned by a single worker and is not safe to share.
    """

    def __init__(self, max_depth: Optional[int] = 3):
        """
        Args:
            max_depth: Deepest BFS level admitted (None = unlimited)
        """
        if max_depth is not None and max_depth < 0:
            raise ValueError("max_depth must be >= 0 or None")

        self.max_depth = max_depth
        self._queue: Deque[FrontierEntry] = deque()
        self._visited: Set[str] = set()
        self._discarded = 0

    def enqueue(self, url: str, depth: int) -> bool:
        """Admit a URL unless already seen or deeper than the ceiling.

        Args:
            url: Canonical absolute URL
            depth: BFS hop count from the base URL

        Returns:
            True if the URL was added to the queue
        """
        if depth < 0:
            raise ValueError("depth must be >= 0")
        if self.max_depth is not None and depth > self.max_depth:
            return False
        if url in self._visited:
            return False

        self._visited.add(url)
        self._queue.append(FrontierEntry(url=url, depth=depth))
        return True

    def dequeue(self) -> Optional[FrontierEntry]:
        """Pop the oldest entry, or return None when the queue is empty."""
        if not self._queue:
            return None
        return self._queue.popleft()

    def discard(self) -> int:
        """Drop every pending entry. Returns the number dropped."""
        dropped = len(self._queue)
        self._queue.clear()
        self._discarded += dropped
        if dropped:
            logger.debug(f"Discarded {dropped} pending frontier entries")
        return dropped

    def has_seen(self, url: str) -> bool:
        return url in self._visited

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def seen_count(self) -> int:
        return len(self._visited)

    @property
    def discarded_count(self) -> int:
        return self._discarded

    def __len__(self) -> int:
        return len(self._queue)

    def __bool__(self) -> bool:
        return bool(self._queue)
