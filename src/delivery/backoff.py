"""
Exponential backoff for delivery queue follow-up passes.

When a pass leaves records pending, the next pass is scheduled after a
growing delay instead of waiting for the next connectivity or periodic
trigger.
"""

import random


class ExponentialBackoff:
    """
    Exponential backoff with jitter.

    Computes delays as: min(base * multiplier^attempt, max_delay) + jitter.
    Call reset() once the queue drains to zero the attempt counter.

    Usage:
        backoff = ExponentialBackoff(base_delay=5.0, max_delay=300.0)
        while await queue.has_pending():
            await asyncio.sleep(backoff.next_delay())
            await queue.process_queue()
        backoff.reset()
    """

    def __init__(
        self,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        multiplier: float = 2.0,
        jitter_range: float = 0.2,
    ):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.multiplier = multiplier
        self.jitter_range = jitter_range
        self._attempt = 0

    @property
    def attempt(self) -> int:
        """Number of delays handed out since the last reset."""
        return self._attempt

    def next_delay(self) -> float:
        """Return the next delay and advance the attempt counter."""
        delay = min(
            self.base_delay * (self.multiplier ** self._attempt),
            self.max_delay,
        )
        # ±jitter_range fraction of delay, never past max_delay
        jitter = delay * random.uniform(-self.jitter_range, self.jitter_range)
        delay = min(max(0.0, delay + jitter), self.max_delay)
        self._attempt += 1
        return delay

    def reset(self) -> None:
        self._attempt = 0
