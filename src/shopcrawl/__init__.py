"""Product page URL discovery for e-commerce sites."""

__version__ = "0.1.0"

from shopcrawl.classifier import ProductClassifier, SignalSelectors
from shopcrawl.config import CrawlConfig
from shopcrawl.browser_config import BrowserConfig, FAST_CONFIG, STEALTH_CONFIG
from shopcrawl.browser_renderer import BrowserRenderer, PageSession, RenderResult
from shopcrawl.errors import (
    ConfigError,
    CrawlError,
    NetworkError,
    ParseError,
    RenderError,
    SessionError,
)
from shopcrawl.frontier import Frontier
from shopcrawl.link_extractor import LinkExtractor, extract_links
from shopcrawl.models import (
    ClassificationResult,
    CrawlReport,
    CrawlTarget,
    DomainOutcome,
    FrontierEntry,
    OutcomeStatus,
    PageSignals,
)
from shopcrawl.orchestrator import CrawlOrchestrator
from shopcrawl.output_manager import OutputManager
from shopcrawl.pacer import AntiDetectionPacer
from shopcrawl.url_utils import normalize_url
from shopcrawl.worker import DomainCrawlWorker

__all__ = [
    "ProductClassifier",
    "SignalSelectors",
    "CrawlConfig",
    "BrowserConfig",
    "FAST_CONFIG",
    "STEALTH_CONFIG",
    "BrowserRenderer",
    "PageSession",
    "RenderResult",
    "ConfigError",
    "CrawlError",
    "NetworkError",
    "ParseError",
    "RenderError",
    "SessionError",
    "Frontier",
    "LinkExtractor",
    "extract_links",
    "ClassificationResult",
    "CrawlReport",
    "CrawlTarget",
    "DomainOutcome",
    "FrontierEntry",
    "OutcomeStatus",
    "PageSignals",
    "CrawlOrchestrator",
    "OutputManager",
    "AntiDetectionPacer",
    "normalize_url",
    "DomainCrawlWorker",
]
