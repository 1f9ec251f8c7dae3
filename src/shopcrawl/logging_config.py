"""Logging setup and per-domain log context for the product crawler."""

import logging
import os
import sys
from pathlib import Path
from typing import Iterable, Optional

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Browser automation internals are chatty at DEBUG
NOISY_LOGGERS = ('asyncio', 'playwright')


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    quiet_loggers: Iterable[str] = NOISY_LOGGERS,
) -> None:
    """Configure root logging for a crawl run.

    Unset arguments fall back to SHOPCRAWL_LOG_LEVEL / SHOPCRAWL_LOG_FILE,
    then to INFO on stdout only.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path; parent directories are created
        format_string: Optional custom format string
        quiet_loggers: Loggers held at WARNING regardless of level
    """
    level = level or os.getenv('SHOPCRAWL_LOG_LEVEL') or 'INFO'
    log_file = log_file or os.getenv('SHOPCRAWL_LOG_FILE')
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding='utf-8'))

    logging.basicConfig(
        level=numeric_level,
        format=format_string or DEFAULT_FORMAT,
        handlers=handlers,
        force=True,
    )

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)


class DomainLogAdapter(logging.LoggerAdapter):
    """Prefixes messages with the domain being crawled.

    The domain is also attached to each record as ``record.domain`` so a
    custom format string can use ``%(domain)s``.
    """

    def process(self, msg, kwargs):
        domain = self.extra['domain']
        extra = dict(kwargs.get('extra') or {})
        extra.setdefault('domain', domain)
        kwargs['extra'] = extra
        return f"[{domain}] {msg}", kwargs


def domain_logger(logger: logging.Logger, domain: str) -> DomainLogAdapter:
    return DomainLogAdapter(logger, {'domain': domain})
