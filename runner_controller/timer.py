"""Sliding-window interval timer for periodic drift checks."""

import asyncio
import time


class IntervalTimer:
    """
    Fires once per interval, measured from the last consumed tick.

    A tick is consumed when the caller comes back for the next one. If the
    caller was busy past the deadline, the next wait lasts a full interval
    from now instead of firing immediately, so a stalled loop never catches
    up with a burst of ticks.
    """

    def __init__(self, interval: float):
        if interval <= 0:
            raise ValueError(f"Interval must be positive, got {interval}")
        self.interval = interval
        self._start = time.monotonic()

    def reset(self) -> None:
        """Start a fresh interval now."""
        self._start = time.monotonic()

    def remaining(self) -> float:
        """Seconds until the next tick, reloading the window if it has passed."""
        elapsed = time.monotonic() - self._start
        if elapsed >= self.interval:
            self.reset()
            return self.interval
        return self.interval - elapsed

    async def wait_timeup(self) -> None:
        """Sleep until the current interval ends."""
        await asyncio.sleep(self.remaining())
