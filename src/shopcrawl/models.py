"""Data models for product URL discovery."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from shopcrawl.url_utils import normalize_url, scope_domain


class ClassificationResult(str, Enum):
    """Verdict for a discovered link."""
    PRODUCT = "product"
    NON_PRODUCT = "non_product"
    AMBIGUOUS = "ambiguous"  # Pattern hit that failed or could not run verification


class OutcomeStatus(str, Enum):
    """How a domain's crawl ended."""
    PENDING = "pending"
    COMPLETED = "completed"  # Frontier exhausted
    BUDGET_EXHAUSTED = "budget_exhausted"  # Page or time budget hit, frontier discarded
    CRASHED = "crashed"  # Worker-fatal error caught by the orchestrator


@dataclass(frozen=True)
class CrawlTarget:
    """A configured domain and the URL its crawl starts from."""

    domain: str
    base_url: str

    @classmethod
    def from_string(cls, value: str) -> "CrawlTarget":
        """Build a target from a bare domain ('etsy.com') or a full URL.

        Bare domains are crawled over https on the host exactly as given;
        no 'www.' is added, since not every store serves one and apex hosts
        that prefer it redirect there. The scope domain drops a leading
        'www.' so both www and apex hosts are in scope either way.
        """
        value = value.strip()
        if not value:
            raise ValueError("Empty domain")

        raw_url = value if '://' in value else f"https://{value}"
        base_url = normalize_url(raw_url, raw_url)
        return cls(domain=scope_domain(base_url), base_url=base_url)


@dataclass(frozen=True)
class FrontierEntry:
    """A URL awaiting crawl and its BFS distance from the base URL."""

    url: str
    depth: int


@dataclass
class PageSignals:
    """Content signals read from a rendered candidate page."""

    has_price: bool = False
    has_add_to_cart: bool = False
    has_buy_button: bool = False
    has_title: bool = False
    has_image: bool = False
    has_metadata: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, bool]) -> "PageSignals":
        return cls(**{
            name: bool(data.get(name, False))
            for name in cls.__dataclass_fields__
        })


@dataclass
class DomainOutcome:
    """Confirmed and failed product URLs for one domain.

    Built incrementally by the domain's worker and sealed when the worker
    terminates. Both lists keep first-recorded order and hold no duplicates.
    """

    domain: str
    confirmed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    status: OutcomeStatus = OutcomeStatus.PENDING
    pages_fetched: int = 0
    elapsed_seconds: float = 0.0
    error: Optional[str] = None
    sealed: bool = False

    # Membership indexes for the ordered lists above
    _confirmed_seen: Set[str] = field(init=False, repr=False, compare=False)
    _failed_seen: Set[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        self._confirmed_seen = set(self.confirmed)
        self._failed_seen = set(self.failed)

    def _check_open(self) -> None:
        if self.sealed:
            raise RuntimeError(f"Outcome for {self.domain} is sealed")

    def record_confirmed(self, url: str) -> bool:
        """Add a confirmed product URL. Returns False if already recorded."""
        self._check_open()
        if url in self._confirmed_seen:
            return False
        self._confirmed_seen.add(url)
        self.confirmed.append(url)
        return True

    def record_failed(self, url: str) -> bool:
        """Add a failed or ambiguous URL. Returns False if already recorded."""
        self._check_open()
        if url in self._failed_seen:
            return False
        self._failed_seen.add(url)
        self.failed.append(url)
        return True

    def seal(self, status: OutcomeStatus) -> "DomainOutcome":
        """Freeze the outcome; further record_* calls raise RuntimeError."""
        self._check_open()
        self.status = status
        self.sealed = True
        return self

    @classmethod
    def crashed(
        cls,
        target: CrawlTarget,
        error: BaseException,
        partial: Optional["DomainOutcome"] = None,
    ) -> "DomainOutcome":
        """Convert a worker crash into a sealed, fully-failed outcome.

        Nothing is confirmed. Every URL the worker had recorded, plus the
        base URL, is reported as failed.
        """
        outcome = cls(domain=target.domain)
        if partial is not None:
            for url in partial.failed + partial.confirmed:
                outcome.record_failed(url)
            outcome.pages_fetched = partial.pages_fetched
            outcome.elapsed_seconds = partial.elapsed_seconds
        outcome.record_failed(target.base_url)
        outcome.error = f"{type(error).__name__}: {error}"
        return outcome.seal(OutcomeStatus.CRASHED)

    def to_summary(self) -> dict:
        return {
            "domain": self.domain,
            "status": self.status.value,
            "confirmed": len(self.confirmed),
            "failed": len(self.failed),
            "pages_fetched": self.pages_fetched,
            "elapsed_seconds": round(self.elapsed_seconds, 2),
            "error": self.error,
        }


@dataclass(frozen=True)
class CrawlReport:
    """Sealed outcomes for every configured domain, in configuration order."""

    outcomes: Tuple[DomainOutcome, ...]

    @property
    def has_failures(self) -> bool:
        return any(outcome.failed for outcome in self.outcomes)

    def confirmed_records(self) -> List[dict]:
        """Records for the confirmed-results file."""
        return [
            {"domain": outcome.domain, "productUrls": list(outcome.confirmed)}
            for outcome in self.outcomes
        ]

    def failed_records(self) -> List[dict]:
        """Records for the failed-results file."""
        return [
            {"domain": outcome.domain, "failedUrls": list(outcome.failed)}
            for outcome in self.outcomes
        ]

    def get(self, domain: str) -> Optional[DomainOutcome]:
        for outcome in self.outcomes:
            if outcome.domain == domain:
                return outcome
        return None

    def to_summary(self) -> dict:
        return {
            "domains": len(self.outcomes),
            "total_confirmed": sum(len(o.confirmed) for o in self.outcomes),
            "total_failed": sum(len(o.failed) for o in self.outcomes),
            "outcomes": [o.to_summary() for o in self.outcomes],
        }
