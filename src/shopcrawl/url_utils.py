"""URL normalization and scope helpers.

Every URL that reaches a Frontier goes through normalize_url() first, so
the visited set compares canonical strings only.
"""

from typing import List
from urllib.parse import urljoin, urlsplit, urlunsplit

from shopcrawl.errors import ParseError

ALLOWED_SCHEMES = {"http", "https"}
DEFAULT_PORTS = {"http": 80, "https": 443}

# Links with these extensions never lead to a product detail page
SKIP_EXTENSIONS = {
    '.pdf', '.jpg', '.jpeg', '.png', '.gif', '.svg', '.webp',
    '.zip', '.tar', '.gz', '.mp4', '.mp3', '.avi', '.mov',
    '.doc', '.docx', '.xls', '.xlsx', '.ppt', '.pptx',
    '.css', '.js', '.xml', '.json', '.ico', '.woff', '.woff2', '.ttf'
}

# Session and checkout flows, matched as whole path segments
SKIP_PATH_PATTERNS = {
    '/checkout/',
    '/cart/',
    '/payment/',
    '/account/login/',
    '/account/register/',
    '/signin/',
    '/signup/',
    '/login/',
    '/register/',
    '/logout/',
}


def _remove_dot_segments(path: str) -> str:
    """Resolve '.' and '..' segments (RFC 3986, section 5.2.4)."""
    if not path:
        return path

    output: List[str] = []
    segments = path.split('/')
    for segment in segments:
        if segment == '.':
            continue
        if segment == '..':
            # Never pop the leading empty segment of an absolute path
            if len(output) > 1:
                output.pop()
            continue
        output.append(segment)

    # Keep a trailing slash when the path ended in a dot segment
    if segments[-1] in ('.', '..'):
        output.append('')

    resolved = '/'.join(output)
    if path.startswith('/') and not resolved.startswith('/'):
        resolved = '/' + resolved
    return resolved


def normalize_url(href: str, base_url: str) -> str:
    """Resolve an href against a base URL and return its canonical form.

    Canonical form: lowercase scheme and host, default port dropped, dot
    segments resolved, fragment stripped, trailing slash removed from
    non-root paths, query string kept as-is.

    Args:
        href: Absolute or relative link target
        base_url: URL of the page the link was found on

    Returns:
        Canonical absolute URL

    Raises:
        ParseError: If the href is empty, malformed, or not http(s)
    """
    if href is None or not href.strip():
        raise ParseError("Empty href", url=href)

    href = href.strip()

    try:
        absolute = urljoin(base_url, href)
        parts = urlsplit(absolute)
        port = parts.port
    except ValueError as e:
        raise ParseError(f"Malformed URL {href!r}: {e}", url=href) from e

    scheme = parts.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        raise ParseError(f"Unsupported scheme {scheme or '(none)'!r}", url=href)

    host = (parts.hostname or "").lower()
    if not host:
        raise ParseError(f"URL has no host: {href!r}", url=href)

    netloc = host
    if port is not None and port != DEFAULT_PORTS[scheme]:
        netloc = f"{host}:{port}"

    path = _remove_dot_segments(parts.path) or '/'
    if len(path) > 1 and path.endswith('/'):
        path = path.rstrip('/') or '/'

    return urlunsplit((scheme, netloc, path, parts.query, ''))


def scope_domain(host_or_url: str) -> str:
    """Return the crawl scope for a host or URL: lowercase host without 'www.'."""
    value = host_or_url.strip().lower()
    if '://' in value:
        value = urlsplit(value).hostname or ''
    else:
        value = value.split('/')[0].split(':')[0]
    if value.startswith('www.'):
        value = value[4:]
    return value


def is_same_domain(url: str, domain: str) -> bool:
    """Check whether a URL belongs to a scope domain or one of its subdomains.

    Args:
        url: Absolute URL to test
        domain: Scope domain as returned by scope_domain()

    Returns:
        True if the URL's host is the domain or a subdomain of it
    """
    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return False
    if not hostname:
        return False

    hostname = hostname.lower()
    if hostname.startswith('www.'):
        hostname = hostname[4:]
    return hostname == domain or hostname.endswith(f".{domain}")


def should_skip_url(url: str) -> bool:
    """Check if a URL points at a static asset or a session/checkout flow.

    Args:
        url: Canonical absolute URL

    Returns:
        True if the URL should not be crawled
    """
    path_lower = urlsplit(url).path.lower()
    # Canonical paths carry no trailing slash; every pattern ends in one
    padded = path_lower if path_lower.endswith('/') else path_lower + '/'

    if any(pattern in padded for pattern in SKIP_PATH_PATTERNS):
        return True

    if any(path_lower.endswith(ext) for ext in SKIP_EXTENSIONS):
        return True

    return False
