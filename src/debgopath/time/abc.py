"""Time operations abstraction for testing.

Retries sleep between attempts; injecting the clock keeps tests from
actually sleeping.
"""

from abc import ABC, abstractmethod


class Time(ABC):
    """Abstract time operations for dependency injection."""

    @abstractmethod
    def sleep(self, seconds: float) -> None:
        """Sleep for specified number of seconds.

        Args:
            seconds: Number of seconds to sleep
        """
        ...

    @abstractmethod
    def monotonic(self) -> float:
        """Return a monotonic clock reading in seconds, for measuring durations."""
        ...
