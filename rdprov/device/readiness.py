"""Poll-with-timeout readiness waits."""

from __future__ import annotations

import logging
import time
from typing import Callable

from rdprov.common.config import TimingConfig

logger = logging.getLogger(__name__)


class ReadinessPoller:
    """Polls a predicate until it holds or a deadline passes.

    The interval starts at `interval_s` and grows by `backoff` after each
    miss, capped at `max_interval_s`. The clock and sleep functions are
    injectable so tests can run instant-ready and never-ready cases without
    wall-clock waits.
    """

    def __init__(
        self,
        interval_s: float = 0.25,
        backoff: float = 1.5,
        max_interval_s: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._interval_s: float = interval_s
        self._backoff: float = max(1.0, backoff)
        self._max_interval_s: float = max(interval_s, max_interval_s)
        self._clock: Callable[[], float] = clock
        self._sleep: Callable[[float], None] = sleep

    @classmethod
    def fromTiming_create(cls, timing: TimingConfig, **kwargs) -> "ReadinessPoller":
        return cls(
            interval_s=timing.poll_interval_s,
            backoff=timing.poll_backoff,
            max_interval_s=timing.poll_max_interval_s,
            **kwargs,
        )

    def pause(self, seconds: float) -> None:
        """Fixed pause through the injected sleep"""
        if seconds > 0:
            self._sleep(seconds)

    def condition_wait(
        self, predicate: Callable[[], bool], timeout_s: float, description: str = "condition"
    ) -> bool:
        """
        Wait until `predicate()` is true.

        A predicate that raises counts as not ready.

        Args:
            predicate: Readiness check
            timeout_s: Overall bound
            description: Label for log messages

        Returns:
            True if the predicate held before the deadline
        """
        deadline = self._clock() + timeout_s
        interval = self._interval_s
        attempts = 0
        while True:
            attempts += 1
            try:
                if predicate():
                    logger.debug("%s ready after %d check(s)", description, attempts)
                    return True
            except Exception as e:
                logger.debug("%s check raised: %s", description, e)

            remaining = deadline - self._clock()
            if remaining <= 0:
                logger.warning(
                    "%s not ready after %.1fs (%d checks)", description, timeout_s, attempts
                )
                return False
            self._sleep(min(interval, remaining))
            interval = min(interval * self._backoff, self._max_interval_s)
