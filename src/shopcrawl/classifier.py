"""
Product page classification.

Two stages:

1. Pattern stage: a pure test of the URL path against an ordered list of
   markers ("/product/", "/dp/", "-p-", ...). Any single hit makes the URL
   a product candidate.
2. Content stage: signals read from the rendered candidate page. A
   candidate is confirmed only if it shows a price, a purchase affordance
   (add-to-cart or buy button) and some product identity (title, image or
   product metadata). Otherwise it is AMBIGUOUS.

Path markers alone catch listing pages that share tokens with product
pages, which is why the content stage exists.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Pattern, Sequence, Union
from urllib.parse import urlsplit

from shopcrawl.constants import (
    ADD_TO_CART_SELECTORS,
    BUY_SELECTORS,
    DEFAULT_PRODUCT_PATTERNS,
    IMAGE_SELECTORS,
    METADATA_SELECTORS,
    PRICE_SELECTORS,
    TITLE_SELECTORS,
)
from shopcrawl.models import ClassificationResult, PageSignals

logger = logging.getLogger(__name__)

# Config strings with this prefix are compiled as regular expressions
REGEX_PREFIX = "re:"

PatternLike = Union[str, Pattern[str]]


def compile_patterns(patterns: Iterable[PatternLike]) -> List[PatternLike]:
    """Turn config pattern strings into matchers, preserving order.

    Plain strings are case-insensitive substrings. Strings starting with
    're:' and pre-compiled patterns are regular expressions.
    """
    compiled: List[PatternLike] = []
    for pattern in patterns:
        if isinstance(pattern, re.Pattern):
            compiled.append(pattern)
        elif pattern.startswith(REGEX_PREFIX):
            compiled.append(re.compile(pattern[len(REGEX_PREFIX):], re.IGNORECASE))
        elif pattern:
            compiled.append(pattern.lower())
    return compiled


@dataclass
class SignalSelectors:
    """CSS selectors probed on a candidate page, one list per signal."""

    price: List[str] = field(default_factory=lambda: list(PRICE_SELECTORS))
    add_to_cart: List[str] = field(default_factory=lambda: list(ADD_TO_CART_SELECTORS))
    buy_button: List[str] = field(default_factory=lambda: list(BUY_SELECTORS))
    title: List[str] = field(default_factory=lambda: list(TITLE_SELECTORS))
    image: List[str] = field(default_factory=lambda: list(IMAGE_SELECTORS))
    metadata: List[str] = field(default_factory=lambda: list(METADATA_SELECTORS))

    def as_query(self) -> dict:
        """Map PageSignals field names to the selectors that set them."""
        return {
            "has_price": self.price,
            "has_add_to_cart": self.add_to_cart,
            "has_buy_button": self.buy_button,
            "has_title": self.title,
            "has_image": self.image,
            "has_metadata": self.metadata,
        }


class ProductClassifier:
    """Decides whether a URL (and optionally its rendered page) is a product page."""

    def __init__(
        self,
        patterns: Optional[Sequence[PatternLike]] = None,
        verify_content: bool = False,
        signal_selectors: Optional[SignalSelectors] = None,
    ):
        """
        Args:
            patterns: Ordered path markers; defaults to DEFAULT_PRODUCT_PATTERNS
            verify_content: Require the content stage before confirming
            signal_selectors: Selectors used by the content stage
        """
        self._patterns = compile_patterns(
            DEFAULT_PRODUCT_PATTERNS if patterns is None else patterns
        )
        self.verify_content = verify_content
        self.signal_selectors = signal_selectors or SignalSelectors()

    @property
    def patterns(self) -> List[PatternLike]:
        return list(self._patterns)

    def matching_pattern(self, url: str) -> Optional[str]:
        """Return the first pattern matching the URL's path, or None."""
        path = urlsplit(url).path
        path_lower = path.lower()

        for pattern in self._patterns:
            if isinstance(pattern, str):
                if pattern in path_lower:
                    return pattern
            elif pattern.search(path):
                return pattern.pattern
        return None

    def matches(self, url: str) -> bool:
        """Pattern stage: True if any configured marker hits the URL path."""
        return self.matching_pattern(url) is not None

    def classify(self, url: str) -> ClassificationResult:
        """Pattern-stage verdict for a URL. Pure, no network access."""
        if self.matches(url):
            return ClassificationResult.PRODUCT
        return ClassificationResult.NON_PRODUCT

    @staticmethod
    def verify(signals: Optional[PageSignals]) -> ClassificationResult:
        """Content stage: price AND purchase affordance AND product identity.

        Args:
            signals: Signals read from the candidate page, or None when
                they could not be read

        Returns:
            PRODUCT if all three signal groups are present, else AMBIGUOUS
        """
        if signals is None:
            return ClassificationResult.AMBIGUOUS

        has_purchase = signals.has_add_to_cart or signals.has_buy_button
        has_identity = signals.has_title or signals.has_image or signals.has_metadata

        if signals.has_price and has_purchase and has_identity:
            return ClassificationResult.PRODUCT
        return ClassificationResult.AMBIGUOUS
