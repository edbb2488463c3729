"""
Clock
=====

Time source abstraction. Services ask a Clock for "now" instead of calling
datetime.now() directly so that deadlines and sweeps can be tested against
a fixed instant.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone


class Clock(ABC):
    """Supplies the current time."""

    @abstractmethod
    def now(self) -> datetime:
        """Current time, timezone-aware UTC."""


class SystemClock(Clock):
    """Wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


system_clock = SystemClock()
