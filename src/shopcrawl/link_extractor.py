"""Hyperlink extraction from rendered page content."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from shopcrawl.errors import ParseError
from shopcrawl.url_utils import is_same_domain, normalize_url, should_skip_url

logger = logging.getLogger(__name__)


def _anchor_hrefs(soup: BeautifulSoup) -> List[str]:
    return [a.get("href") for a in soup.find_all("a", href=True)]


def extract_links(html: str) -> List[str]:
    """Return raw href values of every anchor, in document order.

    Args:
        html: Rendered page markup

    Returns:
        Absolute or relative href strings (unfiltered, may repeat)
    """
    if not html:
        return []
    return _anchor_hrefs(BeautifulSoup(html, "lxml"))


@dataclass
class ExtractedLinks:
    """In-scope canonical links from one page plus what was dropped."""

    links: List[str] = field(default_factory=list)
    malformed: int = 0
    out_of_scope: int = 0
    skipped: int = 0
    truncated: int = 0


class LinkExtractor:
    """Turns a rendered page into the ordered set of in-scope canonical URLs."""

    def __init__(self, max_links_per_page: Optional[int] = None, skip_non_pages: bool = True):
        """
        Args:
            max_links_per_page: Keep at most this many links per page (None = all)
            skip_non_pages: Drop static assets and checkout/login links
        """
        self.max_links_per_page = max_links_per_page
        self.skip_non_pages = skip_non_pages

    def extract(self, html: str, page_url: str, domain: str) -> ExtractedLinks:
        """Extract, normalize and scope-filter the links on a page.

        A malformed href is dropped on its own; it never fails the page.

        Args:
            html: Rendered page markup
            page_url: URL the markup was loaded from (after redirects)
            domain: Scope domain of the crawl

        Returns:
            ExtractedLinks with unique links in first-seen order
        """
        result = ExtractedLinks()
        seen: Set[str] = set()

        if not html:
            return result

        soup = BeautifulSoup(html, "lxml")
        base_url = page_url
        base = soup.find("base", href=True)
        base_href = base.get("href") if base else None
        if base_href:
            try:
                # Validated but not canonicalized: its trailing slash sets the resolution directory
                normalize_url(base_href, page_url)
                base_url = urljoin(page_url, base_href.strip())
            except ParseError:
                logger.debug(f"Ignoring malformed <base href> on {page_url}: {base_href!r}")

        for href in _anchor_hrefs(soup):
            try:
                url = normalize_url(href, base_url)
            except ParseError as e:
                result.malformed += 1
                logger.debug(f"Discarding href on {page_url}: {e}")
                continue

            if url in seen:
                continue
            seen.add(url)

            if not is_same_domain(url, domain):
                result.out_of_scope += 1
                continue

            if self.skip_non_pages and should_skip_url(url):
                result.skipped += 1
                continue

            if self.max_links_per_page is not None and len(result.links) >= self.max_links_per_page:
                result.truncated += 1
                continue

            result.links.append(url)

        return result
