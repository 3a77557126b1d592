"""
Backoff and deadline primitives.

Every wait in the package (ledger transport retries, inclusion polling,
post-condition polling, confirmation polling, failed submission attempts)
goes through poll_until with a Deadline, so all of them share one backoff
shape and all of them stop when the caller's deadline passes.
"""

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterator, Optional, Tuple, Type, TypeVar

from ...config import settings
from .errors import DeadlineExceeded

T = TypeVar("T")

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential backoff with a ceiling: 1s, 1.6s, 2.56s, ... capped at 30s."""

    initial_delay_seconds: float = 1.0
    multiplier: float = 1.6
    max_delay_seconds: float = 30.0

    @classmethod
    def from_settings(cls) -> "BackoffPolicy":
        return cls(
            initial_delay_seconds=settings.backoff_initial_seconds,
            multiplier=settings.backoff_multiplier,
            max_delay_seconds=settings.backoff_max_seconds,
        )

    def delays(self) -> Iterator[float]:
        """Yield successive retry delays forever."""
        delay = min(self.initial_delay_seconds, self.max_delay_seconds)
        while True:
            yield delay
            delay = min(delay * self.multiplier, self.max_delay_seconds)


class Deadline:
    """
    An absolute point in time, measured on a monotonic clock.

    The clock and the sleep function are injectable so tests can run the
    retry loops against a fake clock.
    """

    def __init__(
        self,
        expires_at: float,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.expires_at = expires_at
        self._clock = clock
        self._sleep = sleep

    @classmethod
    def after(
        cls,
        seconds: float,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ) -> "Deadline":
        return cls(clock() + seconds, clock=clock, sleep=sleep)

    def child(self, seconds: float) -> "Deadline":
        """A nested deadline that never outlives this one."""
        return Deadline(
            min(self.expires_at, self._clock() + seconds),
            clock=self._clock,
            sleep=self._sleep,
        )

    def remaining(self) -> float:
        return max(0.0, self.expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self._clock() >= self.expires_at

    def check(self, stage: Optional[str] = None) -> None:
        if self.expired:
            raise DeadlineExceeded(stage=stage)

    async def sleep(self, delay: float, stage: Optional[str] = None) -> None:
        """Sleep for delay, but never past the deadline."""
        self.check(stage)
        await self._sleep(min(delay, self.remaining()))

    def __repr__(self) -> str:
        return f"Deadline(remaining={self.remaining():.3f}s)"


async def poll_until(
    check: Callable[[], Awaitable[Optional[T]]],
    *,
    deadline: Deadline,
    backoff: Optional[BackoffPolicy] = None,
    interval: Optional[float] = None,
    retry_on: Tuple[Type[BaseException], ...] = (),
    stage: str = "poll",
) -> T:
    """
    Call check until it returns something other than None/False.

    Sleeps between calls follow backoff, or a fixed interval when one is
    given. Exceptions listed in retry_on are logged and treated like a
    negative result; anything else propagates. When the deadline passes,
    DeadlineExceeded is raised, chained from the last absorbed error.

    Args:
        check: Coroutine function probing for the awaited condition
        deadline: Absolute deadline bounding the whole poll
        backoff: Delay policy (default: from settings)
        interval: Fixed delay overriding backoff
        retry_on: Exception types to absorb
        stage: Label used in logs and in DeadlineExceeded

    Returns:
        The first non-negative result of check
    """
    if interval is not None:
        delays: Iterator[float] = itertools.repeat(interval)
    else:
        delays = (backoff or BackoffPolicy.from_settings()).delays()

    last_error: Optional[BaseException] = None
    attempt = 0

    while True:
        if deadline.expired:
            raise DeadlineExceeded(stage=stage) from last_error

        attempt += 1
        try:
            result = await check()
        except retry_on as e:
            last_error = e
            logger.warning(f"{stage}: attempt {attempt} failed: {e}")
        else:
            if result is not None and result is not False:
                return result

        if deadline.expired:
            raise DeadlineExceeded(stage=stage) from last_error
        await deadline.sleep(next(delays), stage=stage)
