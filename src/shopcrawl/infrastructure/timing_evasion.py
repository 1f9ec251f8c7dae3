"""
Request timing signature evasion.

A crawler that navigates on a fixed beat is easy to fingerprint. This module
draws every inter-navigation wait from a configured [min, max] interval and
shapes it so consecutive waits do not look uniform:

- a per-session speed bias (some sessions are a little faster than others)
- gaussian jitter around the biased value
- occasional short bursts of quicker navigation
- gradual slowdown after many requests (fatigue)

Whatever the shaping, the final wait is clamped back into [min, max], so
the configured interval is a hard bound.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class TimingProfile(str, Enum):
    """Predefined timing profiles."""
    FAST = "fast"  # Quick but still human-like
    NORMAL = "normal"  # Average user speed
    SLOW = "slow"  # Careful/slow user
    CAUTIOUS = "cautious"  # Very slow, careful navigation


@dataclass
class TimingConfig:
    """Configuration for timing evasion."""
    # Wait before each navigation (seconds)
    min_page_delay: float = 1.0
    max_page_delay: float = 3.0

    # Jitter settings
    jitter_factor: float = 0.2  # Std dev as a fraction of the delay
    enable_gaussian: bool = True

    # Per-session speed bias
    session_speed_variation: float = 0.3

    # Fatigue simulation
    enable_fatigue: bool = False
    fatigue_after_requests: int = 50
    fatigue_slowdown: float = 1.3

    # Burst behavior
    enable_burst: bool = True
    burst_probability: float = 0.1
    burst_speedup: float = 0.5

    def __post_init__(self):
        if self.min_page_delay < 0 or self.max_page_delay < 0:
            raise ValueError("Page delays must be >= 0")
        if self.min_page_delay > self.max_page_delay:
            raise ValueError("min_page_delay must not exceed max_page_delay")


class TimingEvasion:
    """
    Randomized inter-navigation waits.

    One instance belongs to one domain's crawl; its burst and fatigue state
    track that domain's request count only.
    """

    def __init__(
        self,
        config: Optional[TimingConfig] = None,
        profile: TimingProfile = TimingProfile.NORMAL,
        enabled: bool = True,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or TimingConfig()
        self.profile = profile
        self.enabled = enabled
        self._rng = rng or random.Random()
        self._session_modifier = self._generate_session_modifier()
        self._request_count = 0
        self._in_burst = False
        self._burst_remaining = 0

    def _generate_session_modifier(self) -> float:
        variation = self.config.session_speed_variation
        return 1.0 + self._rng.uniform(-variation, variation)

    def _apply_jitter(self, value: float) -> float:
        if self.config.enable_gaussian:
            std_dev = value * self.config.jitter_factor
            return max(0.0, self._rng.gauss(value, std_dev))

        jitter_range = value * self.config.jitter_factor
        return value + self._rng.uniform(-jitter_range, jitter_range)

    def _get_fatigue_modifier(self) -> float:
        if not self.config.enable_fatigue:
            return 1.0

        if self._request_count > self.config.fatigue_after_requests:
            excess = self._request_count - self.config.fatigue_after_requests
            return min(self.config.fatigue_slowdown, 1.0 + (excess / 100))

        return 1.0

    def _check_burst(self) -> float:
        """Update burst state and return the speed modifier for this request."""
        if not self.config.enable_burst:
            return 1.0

        if self._in_burst:
            self._burst_remaining -= 1
            if self._burst_remaining <= 0:
                self._in_burst = False
                logger.debug("Burst ended")
            return self.config.burst_speedup

        if self._rng.random() < self.config.burst_probability:
            self._in_burst = True
            self._burst_remaining = self._rng.randint(3, 8)
            logger.debug(f"Starting burst of {self._burst_remaining} requests")
            return self.config.burst_speedup

        return 1.0

    def next_page_delay(self) -> float:
        """Compute the next inter-navigation wait without sleeping.

        Returns:
            Delay in seconds, always within [min_page_delay, max_page_delay]
        """
        low = self.config.min_page_delay
        high = self.config.max_page_delay
        if high == low:
            return low

        delay = self._rng.uniform(low, high)
        delay *= self._session_modifier
        delay *= self._get_fatigue_modifier()
        delay *= self._check_burst()
        delay = self._apply_jitter(delay)

        return min(high, max(low, delay))

    async def wait_between_pages(self) -> float:
        """
        Wait before the next page navigation.

        Returns:
            Actual delay in seconds (0.0 when pacing is disabled)
        """
        if not self.enabled:
            return 0.0

        delay = self.next_page_delay()
        self._request_count += 1

        logger.debug(f"Page delay: {delay:.2f}s (request #{self._request_count})")
        await asyncio.sleep(delay)
        return delay

    def reset_session(self) -> None:
        """Reset session state for a new browsing session."""
        self._session_modifier = self._generate_session_modifier()
        self._request_count = 0
        self._in_burst = False
        self._burst_remaining = 0
        logger.debug("Timing session reset")

    def get_stats(self) -> dict:
        """Get timing statistics."""
        return {
            "profile": self.profile.value,
            "enabled": self.enabled,
            "session_modifier": self._session_modifier,
            "request_count": self._request_count,
            "in_burst": self._in_burst,
        }


# Profile presets
TIMING_PROFILES = {
    TimingProfile.FAST: TimingConfig(
        min_page_delay=0.3,
        max_page_delay=1.5,
        enable_fatigue=False,
        enable_burst=True,
    ),
    TimingProfile.NORMAL: TimingConfig(
        min_page_delay=1.0,
        max_page_delay=3.0,
        enable_fatigue=True,
    ),
    TimingProfile.SLOW: TimingConfig(
        min_page_delay=1.5,
        max_page_delay=5.0,
        enable_fatigue=True,
    ),
    TimingProfile.CAUTIOUS: TimingConfig(
        min_page_delay=3.0,
        max_page_delay=10.0,
        enable_fatigue=True,
        enable_burst=False,
    ),
}


def create_timing_evasion(
    profile: TimingProfile = TimingProfile.NORMAL,
    enabled: bool = True,
) -> TimingEvasion:
    """
    Create a TimingEvasion instance with a preset profile.

    Args:
        profile: Timing profile to use
        enabled: False makes every wait a no-op

    Returns:
        Configured TimingEvasion instance
    """
    config = TIMING_PROFILES.get(profile, TimingConfig())
    return TimingEvasion(config=config, profile=profile, enabled=enabled)
