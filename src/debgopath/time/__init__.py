"""Time operations abstraction for testing."""

from debgopath.time.abc import Time
from debgopath.time.fake import FakeTime
from debgopath.time.real import RealTime

__all__ = ["FakeTime", "RealTime", "Time"]
