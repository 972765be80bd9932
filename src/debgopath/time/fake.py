"""Fake Time implementation for testing.

FakeTime tracks sleep() calls without actually sleeping, and advances its
clock by the slept amount.
"""

from debgopath.time.abc import Time


class FakeTime(Time):
    """In-memory fake implementation that tracks calls without sleeping.

    This class has NO public setup methods. All state is provided via constructor
    or captured during execution.
    """

    def __init__(self, now: float = 0.0) -> None:
        self._now = now
        self._sleep_calls: list[float] = []

    @property
    def sleep_calls(self) -> list[float]:
        """Get the list of sleep() calls that were made.

        This property is for test assertions only.
        """
        return self._sleep_calls

    def sleep(self, seconds: float) -> None:
        self._sleep_calls.append(seconds)
        self._now += seconds

    def monotonic(self) -> float:
        return self._now
