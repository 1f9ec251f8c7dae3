# src/shopcrawl/constants.py
"""Centralized constants for the product crawler.

User-configurable values live in config.py (CrawlConfig) and
browser_config.py (BrowserConfig); the defaults are defined here.
"""

# =============================================================================
# Frontier Constants
# =============================================================================

# BFS hop ceiling from a domain's base URL
DEFAULT_MAX_DEPTH = 3

# Page fetches allowed per domain before the worker drains
DEFAULT_MAX_PAGES_PER_DOMAIN = 500

# Navigation retries for transient network errors
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_SECONDS = 2.0
DEFAULT_BACKOFF_FACTOR = 2.0


# =============================================================================
# Pacing Constants
# =============================================================================

# Randomized wait before each navigation (seconds)
DEFAULT_MIN_DELAY_SECONDS = 1.0
DEFAULT_MAX_DELAY_SECONDS = 3.0

# Lazy-load expansion
DEFAULT_MAX_SCROLL_ATTEMPTS = 3
DEFAULT_SCROLL_SETTLE_SECONDS = 2.0

# Consent/popup dismissal
DEFAULT_DISMISS_PROBE_TIMEOUT_MS = 5000
DEFAULT_DISMISS_BUDGET_SECONDS = 15.0
POST_DISMISS_DELAY_SECONDS = 1.0

# Tried in order, first visible match is clicked
DEFAULT_DISMISS_SELECTORS = [
    "#cookie-accept",
    ".cookie-consent-accept",
    '[data-testid="cookie-consent-accept"]',
    ".accept-cookies",
    "#onetrust-accept-btn-handler",
    ".cc-accept",
    'button:has-text("Accept All")',
    'button:has-text("Accept")',
    'button[aria-label="Close"]',
    '[role="dialog"] [aria-label*="close" i]',
]


# =============================================================================
# Classification Constants
# =============================================================================

# Path markers for product detail pages (any one hit qualifies)
DEFAULT_PRODUCT_PATTERNS = [
    "/product/",
    "/item/",
    "/p/",
    "/products/",
    "/pd/",
    "-p-",
    "/dp/",
    "/catalog/",
    "/shop/",
    "/detail/",
    "/goods/",
    "/listing/",
]

# DOM selectors for the content-verification stage
PRICE_SELECTORS = [
    "[data-price]",
    ".price",
    ".product-price",
    '[itemprop="price"]',
]
ADD_TO_CART_SELECTORS = [
    "[data-add-to-cart]",
    ".add-to-cart",
    "#add-to-cart",
    'button[name="add-to-cart"]',
]
BUY_SELECTORS = [
    ".buy-now",
    "#buy-now",
    '[data-action="buy-now"]',
]
TITLE_SELECTORS = [
    "[data-product-title]",
    ".product-title",
    ".product-name",
    'h1[itemprop="name"]',
]
IMAGE_SELECTORS = [
    ".product-image",
    "[data-product-image]",
    'img[itemprop="image"]',
]
METADATA_SELECTORS = [
    'meta[property="og:type"][content="product"]',
    '[itemtype*="schema.org/Product"]',
    '[itemprop="sku"]',
]


# =============================================================================
# Orchestration Constants
# =============================================================================

CONCURRENCY_SEQUENTIAL = "sequential"
CONCURRENCY_PARALLEL = "parallel"
DEFAULT_PARALLELISM = 4

ISOLATION_SHARED = "shared"
ISOLATION_PER_DOMAIN = "per_domain"


# =============================================================================
# Output Constants
# =============================================================================

DEFAULT_OUTPUT_DIR = "output"
CONFIRMED_RESULTS_FILENAME = "product_urls.json"
FAILED_RESULTS_FILENAME = "failed_urls.json"
SUMMARY_FILENAME = "crawl_summary.json"


# =============================================================================
# Renderer Constants
# =============================================================================

# Navigation timeout in milliseconds
DEFAULT_NAVIGATION_TIMEOUT_MS = 60000

DESKTOP_VIEWPORT_WIDTH = 1920
DESKTOP_VIEWPORT_HEIGHT = 1080

# Resource types aborted during rendering
DEFAULT_BLOCKED_RESOURCES = ["image", "stylesheet", "font"]
