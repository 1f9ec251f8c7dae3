"""
Browser configuration for Playwright-based rendering.

This module provides a validated Pydantic configuration model for all
renderer options (navigation timeout, wait-until policy, request headers,
resource blocking, viewport) and pre-configured instances for common use
cases.
"""
import random
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from shopcrawl.constants import (
    DEFAULT_BLOCKED_RESOURCES,
    DEFAULT_NAVIGATION_TIMEOUT_MS,
    DESKTOP_VIEWPORT_HEIGHT,
    DESKTOP_VIEWPORT_WIDTH,
)


# User agent pool for rotation
USER_AGENTS = [
    # Chrome on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/130.0.0.0 Safari/537.36",
    # Chrome on Mac
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/130.0.0.0 Safari/537.36",
]

DEFAULT_EXTRA_HEADERS = {
    "Accept-Language": "en-US,en;q=0.9",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Upgrade-Insecure-Requests": "1",
}


def get_random_user_agent() -> str:
    """Get a random user agent from the pool."""
    return random.choice(USER_AGENTS)


class BrowserConfig(BaseModel):
    """
    Configuration for the Playwright-based BrowserRenderer.

    All fields are validated by Pydantic to ensure type safety and valid values.
    """

    model_config = ConfigDict(validate_assignment=True)

    headless: bool = Field(
        default=True,
        description="Run browser in headless mode (no visible UI)"
    )

    stealth_mode: bool = Field(
        default=True,
        description="Inject scripts that mask common automation indicators"
    )

    browser_type: Literal["chromium", "firefox", "webkit"] = Field(
        default="chromium",
        description="Browser engine to use for rendering"
    )

    timeout: int = Field(
        default=DEFAULT_NAVIGATION_TIMEOUT_MS,
        description="Navigation timeout in milliseconds",
        ge=1000,
        le=300000
    )

    wait_until: Literal["load", "domcontentloaded", "networkidle", "commit"] = Field(
        default="networkidle",
        description="When to consider navigation complete"
    )

    block_resources: List[str] = Field(
        default_factory=lambda: list(DEFAULT_BLOCKED_RESOURCES),
        description="Resource types to abort (e.g., 'image', 'font', 'stylesheet')"
    )

    launch_args: List[str] = Field(
        default_factory=lambda: ["--disable-blink-features=AutomationControlled"],
        description="Additional browser launch arguments"
    )

    user_agent: Optional[str] = Field(
        default=None,
        description="Custom user agent. If None and rotate_user_agent=True, a random one is used."
    )

    rotate_user_agent: bool = Field(
        default=True,
        description="Pick a random user agent for each new browser context"
    )

    extra_headers: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_EXTRA_HEADERS),
        description="Headers sent with every request (Accept-Language, Accept, ...)"
    )

    viewport_width: int = Field(default=DESKTOP_VIEWPORT_WIDTH, ge=320)
    viewport_height: int = Field(default=DESKTOP_VIEWPORT_HEIGHT, ge=240)

    locale: str = Field(default="en-US")

    capture_console: bool = Field(
        default=True,
        description="Log page console errors and warnings at DEBUG level"
    )

    def get_user_agent(self) -> str:
        """Get the user agent to use for a new context."""
        if self.user_agent:
            return self.user_agent
        if self.rotate_user_agent:
            return get_random_user_agent()
        return USER_AGENTS[0]

    @property
    def viewport(self) -> Dict[str, int]:
        return {"width": self.viewport_width, "height": self.viewport_height}


# --- Pre-configured Instances for Common Use Cases ---

FAST_CONFIG = BrowserConfig(
    headless=True,
    stealth_mode=True,
    wait_until="domcontentloaded",
    timeout=15000,
    block_resources=["image", "font", "stylesheet", "media"],
)
"""
Fast configuration optimized for speed.

Blocks heavy resources and uses faster page load detection.
Best for small catalogues that render most links server-side.
"""

STEALTH_CONFIG = BrowserConfig(
    headless=True,
    stealth_mode=True,
    wait_until="networkidle",
    timeout=90000,
    block_resources=["image", "font"],
    rotate_user_agent=True,
    launch_args=[
        "--disable-blink-features=AutomationControlled",
        "--disable-features=IsolateOrigins,site-per-process",
        "--no-first-run",
        "--no-default-browser-check",
    ],
)
"""
Stealth configuration for storefronts with aggressive bot protection.

Longer timeouts, stylesheets kept so layout-dependent lazy loading still fires.
"""

BROWSER_PRESETS: Dict[str, BrowserConfig] = {
    "default": BrowserConfig(),
    "fast": FAST_CONFIG,
    "stealth": STEALTH_CONFIG,
}


def browser_config_for(preset: str = "default", **overrides) -> BrowserConfig:
    """Copy a named preset with field overrides (e.g. headless=False).

    Raises:
        KeyError: Unknown preset name
    """
    return BROWSER_PRESETS[preset].model_copy(update=overrides, deep=True)
