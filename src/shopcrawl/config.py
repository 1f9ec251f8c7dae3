from dotenv import load_dotenv
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union, get_args, get_origin
from pathlib import Path
import json
import os

from shopcrawl.classifier import SignalSelectors
from shopcrawl.constants import (
    CONCURRENCY_PARALLEL,
    CONCURRENCY_SEQUENTIAL,
    DEFAULT_BACKOFF_FACTOR,
    DEFAULT_DISMISS_BUDGET_SECONDS,
    DEFAULT_DISMISS_PROBE_TIMEOUT_MS,
    DEFAULT_DISMISS_SELECTORS,
    DEFAULT_MAX_DELAY_SECONDS,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_PAGES_PER_DOMAIN,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_SCROLL_ATTEMPTS,
    DEFAULT_MIN_DELAY_SECONDS,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_PARALLELISM,
    DEFAULT_PRODUCT_PATTERNS,
    DEFAULT_RETRY_DELAY_SECONDS,
    DEFAULT_SCROLL_SETTLE_SECONDS,
    ISOLATION_PER_DOMAIN,
    ISOLATION_SHARED,
)
from shopcrawl.errors import ConfigError
from shopcrawl.infrastructure.timing_evasion import TimingConfig

load_dotenv()  # Loads variables from .env file

ENV_PREFIX = "SHOPCRAWL_"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _parse_env_value(field_type, raw: str):
    """Convert an environment string to a dataclass field's type."""
    origin = get_origin(field_type)

    if origin is Union:
        # Optional[X]
        inner = [arg for arg in get_args(field_type) if arg is not type(None)][0]
        if raw.strip().lower() in ("", "none", "null"):
            return None
        return _parse_env_value(inner, raw)

    if origin in (list, List):
        return [item.strip() for item in raw.split(",") if item.strip()]

    if field_type is bool:
        return raw.strip().lower() in _TRUE_VALUES
    if field_type is int:
        return int(raw)
    if field_type is float:
        return float(raw)
    if field_type is str:
        return raw

    raise ValueError(f"Unsupported field type {field_type!r}")


@dataclass
class CrawlConfig:
    """Configuration for a product URL discovery run."""

    # Frontier
    max_depth: Optional[int] = DEFAULT_MAX_DEPTH  # None = unlimited
    max_links_per_page: Optional[int] = None
    skip_non_pages: bool = True

    # Budgets (per domain)
    max_pages_per_domain: Optional[int] = DEFAULT_MAX_PAGES_PER_DOMAIN
    max_duration_seconds: Optional[float] = None

    # Navigation retries (NetworkError only, exponential backoff)
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR

    # Pacing
    pacing_enabled: bool = True
    min_delay: float = DEFAULT_MIN_DELAY_SECONDS
    max_delay: float = DEFAULT_MAX_DELAY_SECONDS

    # Lazy-load expansion
    max_scroll_attempts: int = DEFAULT_MAX_SCROLL_ATTEMPTS
    scroll_settle_seconds: float = DEFAULT_SCROLL_SETTLE_SECONDS

    # Consent/popup dismissal
    dismiss_selectors: List[str] = field(default_factory=lambda: list(DEFAULT_DISMISS_SELECTORS))
    dismiss_probe_timeout_ms: int = DEFAULT_DISMISS_PROBE_TIMEOUT_MS
    dismiss_budget_seconds: float = DEFAULT_DISMISS_BUDGET_SECONDS

    # Classification
    product_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_PRODUCT_PATTERNS))
    verify_content: bool = False
    signal_selectors: Dict[str, List[str]] = field(default_factory=dict)

    # Orchestration
    concurrency: str = CONCURRENCY_PARALLEL  # 'sequential' or 'parallel'
    parallelism: int = DEFAULT_PARALLELISM
    domain_cooldown_seconds: float = 0.0
    isolation: str = ISOLATION_SHARED  # 'shared' or 'per_domain'

    # Output
    output_dir: str = DEFAULT_OUTPUT_DIR

    @classmethod
    def from_env(cls) -> "CrawlConfig":
        """Load configuration from environment variables.

        Environment variables are prefixed with SHOPCRAWL_,
        e.g. SHOPCRAWL_MAX_DEPTH=2 or SHOPCRAWL_VERIFY_CONTENT=true.
        List fields take comma-separated values. Values that fail to parse
        keep their default.

        Returns:
            CrawlConfig with values from environment
        """
        config = cls()

        for field_name, field_def in config.__dataclass_fields__.items():
            if field_name == "signal_selectors":
                continue
            env_value = os.getenv(f"{ENV_PREFIX}{field_name.upper()}")
            if env_value is None:
                continue
            try:
                setattr(config, field_name, _parse_env_value(field_def.type, env_value))
            except ValueError:
                pass  # Keep default if conversion fails

        return config

    @classmethod
    def from_file(cls, path: str) -> "CrawlConfig":
        """Load configuration from a JSON file.

        The file may hold the fields at top level or under a "crawl" key.
        Unknown keys are ignored. A missing file yields the defaults.

        Args:
            path: Path to JSON configuration file

        Returns:
            CrawlConfig with values from file
        """
        config = cls()
        file_path = Path(path)

        if not file_path.exists():
            return config

        with open(file_path, 'r') as f:
            data = json.load(f)

        crawl_config = data.get('crawl', data)

        for field_name in config.__dataclass_fields__:
            if field_name in crawl_config:
                setattr(config, field_name, crawl_config[field_name])

        return config

    def validate(self) -> "CrawlConfig":
        """Check value consistency.

        Returns:
            self, for chaining

        Raises:
            ConfigError: If any value is out of range or inconsistent
        """
        if self.max_depth is not None and self.max_depth < 0:
            raise ConfigError("max_depth must be >= 0 or None")
        if self.min_delay < 0 or self.max_delay < 0:
            raise ConfigError("Delays must be >= 0")
        if self.min_delay > self.max_delay:
            raise ConfigError(f"min_delay ({self.min_delay}) exceeds max_delay ({self.max_delay})")
        if self.max_scroll_attempts < 0:
            raise ConfigError("max_scroll_attempts must be >= 0")
        if self.scroll_settle_seconds < 0:
            raise ConfigError("scroll_settle_seconds must be >= 0")
        if self.max_links_per_page is not None and self.max_links_per_page < 0:
            raise ConfigError("max_links_per_page must be >= 0 or None")
        if self.max_pages_per_domain is not None and self.max_pages_per_domain < 1:
            raise ConfigError("max_pages_per_domain must be >= 1 or None")
        if self.max_duration_seconds is not None and self.max_duration_seconds <= 0:
            raise ConfigError("max_duration_seconds must be > 0 or None")
        if self.max_retries < 0:
            raise ConfigError("max_retries must be >= 0")
        if self.retry_delay < 0:
            raise ConfigError("retry_delay must be >= 0")
        if self.backoff_factor < 1:
            raise ConfigError("backoff_factor must be >= 1")
        if self.concurrency not in (CONCURRENCY_SEQUENTIAL, CONCURRENCY_PARALLEL):
            raise ConfigError(f"Unknown concurrency mode: {self.concurrency!r}")
        if self.parallelism < 1:
            raise ConfigError("parallelism must be >= 1")
        if self.domain_cooldown_seconds < 0:
            raise ConfigError("domain_cooldown_seconds must be >= 0")
        if self.isolation not in (ISOLATION_SHARED, ISOLATION_PER_DOMAIN):
            raise ConfigError(f"Unknown isolation level: {self.isolation!r}")
        if not self.product_patterns:
            raise ConfigError("product_patterns must not be empty")

        unknown = set(self.signal_selectors) - set(SignalSelectors.__dataclass_fields__)
        if unknown:
            raise ConfigError(f"Unknown signal selector groups: {sorted(unknown)}")

        return self

    @property
    def is_sequential(self) -> bool:
        return self.concurrency == CONCURRENCY_SEQUENTIAL

    def build_signal_selectors(self) -> SignalSelectors:
        """Default signal selectors with any configured groups replaced."""
        return SignalSelectors(**{
            name: list(selectors) for name, selectors in self.signal_selectors.items()
        })

    def build_timing_config(self) -> TimingConfig:
        return TimingConfig(min_page_delay=self.min_delay, max_page_delay=self.max_delay)

    def to_dict(self) -> dict:
        """Convert configuration to dictionary.

        Returns:
            Dictionary of all configuration values
        """
        return {
            field_name: getattr(self, field_name)
            for field_name in self.__dataclass_fields__
        }

    def save_to_file(self, path: str) -> None:
        """Save current configuration to a JSON file.

        Args:
            path: Path to save configuration
        """
        with open(path, 'w') as f:
            json.dump({'crawl': self.to_dict()}, f, indent=2)
