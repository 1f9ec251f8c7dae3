"""Error taxonomy for the product crawler.

Per-URL errors (NetworkError, RenderError) are recorded against the URL and
the crawl moves on. ParseError discards a single href. SessionError means the
renderer session itself is gone and ends the domain's crawl.
"""

from typing import Optional


class CrawlError(Exception):
    """Base class for all crawler errors."""

    def __init__(self, message: str, url: Optional[str] = None):
        self.message = message
        self.url = url
        super().__init__(message)


class NetworkError(CrawlError):
    """Navigation failed, timed out, or returned an error status."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message, url)


class RenderError(CrawlError):
    """Page content never settled or a DOM evaluation threw."""


class ParseError(CrawlError):
    """An href could not be turned into a crawlable absolute URL."""


class SessionError(CrawlError):
    """The renderer session (browser, context or page) is no longer usable."""


class ConfigError(ValueError):
    """Raised when crawl configuration values are inconsistent."""
