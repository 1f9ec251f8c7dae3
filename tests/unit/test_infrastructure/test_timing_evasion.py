"""Unit tests for TimingEvasion."""

import random

import pytest

from shopcrawl.infrastructure.timing_evasion import (
    TIMING_PROFILES,
    TimingConfig,
    TimingEvasion,
    TimingProfile,
    create_timing_evasion,
)


class TestTimingConfig:
    """Tests for TimingConfig."""

    def test_default_config(self):
        """Test default configuration values."""
        config = TimingConfig()

        assert config.min_page_delay == 1.0
        assert config.max_page_delay == 3.0
        assert config.enable_gaussian is True

    def test_invalid_range(self):
        """Test min above max is rejected."""
        with pytest.raises(ValueError):
            TimingConfig(min_page_delay=5.0, max_page_delay=1.0)
        with pytest.raises(ValueError):
            TimingConfig(min_page_delay=-1.0)


class TestTimingEvasion:
    """Tests for TimingEvasion."""

    @pytest.fixture
    def timing(self):
        """Create a seeded timing source."""
        return TimingEvasion(TimingConfig(min_page_delay=1.0, max_page_delay=3.0), rng=random.Random(7))

    def test_delays_within_bounds(self, timing):
        """Test every delay stays inside the configured interval."""
        delays = [timing.next_page_delay() for _ in range(500)]

        assert all(1.0 <= d <= 3.0 for d in delays)
        assert len(set(delays)) > 10

    def test_fixed_interval(self):
        """Test equal bounds give a constant delay."""
        timing = TimingEvasion(TimingConfig(min_page_delay=2.0, max_page_delay=2.0))
        assert timing.next_page_delay() == 2.0

    def test_seeded_sequence_reproducible(self):
        """Test the same seed yields the same delays."""
        config = TimingConfig(min_page_delay=0.5, max_page_delay=1.5)
        first = TimingEvasion(config, rng=random.Random(1))
        second = TimingEvasion(config, rng=random.Random(1))

        assert [first.next_page_delay() for _ in range(20)] == [second.next_page_delay() for _ in range(20)]

    @pytest.mark.asyncio
    async def test_disabled_does_not_sleep(self):
        """Test disabled pacing returns immediately."""
        timing = TimingEvasion(TimingConfig(min_page_delay=5.0, max_page_delay=9.0), enabled=False)

        assert await timing.wait_between_pages() == 0.0
        assert timing.get_stats()["request_count"] == 0

    @pytest.mark.asyncio
    async def test_wait_counts_requests(self):
        """Test waiting records the request."""
        timing = TimingEvasion(TimingConfig(min_page_delay=0.0, max_page_delay=0.01))

        delay = await timing.wait_between_pages()

        assert 0.0 <= delay <= 0.01
        assert timing.get_stats()["request_count"] == 1

    def test_reset_session(self, timing):
        """Test reset clears per-session state."""
        timing._request_count = 40
        timing.reset_session()

        assert timing.get_stats()["request_count"] == 0
        assert timing.get_stats()["in_burst"] is False


class TestProfiles:
    """Tests for timing profile presets."""

    def test_every_profile_has_config(self):
        assert set(TIMING_PROFILES) == set(TimingProfile)

    def test_create_timing_evasion(self):
        timing = create_timing_evasion(TimingProfile.CAUTIOUS, enabled=False)

        assert timing.profile is TimingProfile.CAUTIOUS
        assert timing.config.min_page_delay == 3.0
        assert timing.enabled is False
