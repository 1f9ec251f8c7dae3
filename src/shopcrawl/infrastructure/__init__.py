"""
Infrastructure Package.

Timing evasion used to pace navigations.
"""

from .timing_evasion import (
    TimingEvasion,
    TimingConfig,
    TimingProfile,
    TIMING_PROFILES,
    create_timing_evasion,
)

__all__ = [
    # Timing Evasion
    "TimingEvasion",
    "TimingConfig",
    "TimingProfile",
    "TIMING_PROFILES",
    "create_timing_evasion",
]
