"""
Timer Scheduling

Generic scheduler capability used by the routing protocols. Timers are
identified by opaque integer handles and fire by handing their token to a
single dispatch callback.
"""

import asyncio
import itertools
import logging
import random
from abc import ABC, abstractmethod
from typing import Callable, Dict, Hashable, Optional

logger = logging.getLogger(__name__)


class Scheduler(ABC):
    """
    Scheduler capability: one-shot and periodic timers keyed by tokens
    """

    def __init__(self, rng: Optional[random.Random] = None):
        """
        Initialize scheduler

        Args:
            rng: Random source for jitter (defaults to the module RNG)
        """
        self.dispatch: Optional[Callable[[Hashable], None]] = None
        self.rng = rng or random.Random()
        self._handle_ids = itertools.count(1)

    @abstractmethod
    def now(self) -> float:
        """Current time in seconds"""

    @abstractmethod
    def schedule_after(self, delay: float, token: Hashable) -> int:
        """
        Fire token once after delay

        Returns:
            Timer handle
        """

    @abstractmethod
    def schedule_periodic(self, interval: float, jitter: float, token: Hashable,
                          initial_delay: Optional[float] = None) -> int:
        """
        Fire token every interval +/- jitter until cancelled

        Args:
            interval: Nominal period
            jitter: Bound of the uniform jitter added to every period
            token: Token handed to dispatch
            initial_delay: Delay before the first firing (defaults to a jittered interval)

        Returns:
            Timer handle
        """

    @abstractmethod
    def cancel(self, handle: int) -> bool:
        """
        Cancel a pending timer

        Returns:
            True if the handle was pending
        """

    @abstractmethod
    def cancel_all(self):
        """Cancel every pending timer"""

    def jittered(self, interval: float, jitter: float) -> float:
        """Interval with uniform jitter applied, never negative"""
        if jitter <= 0:
            return interval
        return max(0.0, interval + self.rng.uniform(-jitter, jitter))

    def _next_handle(self) -> int:
        return next(self._handle_ids)

    def _fire(self, token: Hashable):
        if self.dispatch is None:
            logger.warning(f"Timer {token!r} fired with no dispatch callback bound")
            return
        self.dispatch(token)


class AsyncioScheduler(Scheduler):
    """
    Scheduler backed by the running asyncio event loop

    Callbacks run on the loop thread one at a time, so protocol state is
    never touched concurrently.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None,
                 rng: Optional[random.Random] = None):
        super().__init__(rng)
        self.loop = loop or asyncio.get_running_loop()
        self.timers: Dict[int, asyncio.TimerHandle] = {}

    def now(self) -> float:
        return self.loop.time()

    def schedule_after(self, delay: float, token: Hashable) -> int:
        handle = self._next_handle()
        self.timers[handle] = self.loop.call_later(delay, self._fire_once, handle, token)
        logger.debug(f"Scheduled {token!r} in {delay:.3f}s (handle {handle})")
        return handle

    def schedule_periodic(self, interval: float, jitter: float, token: Hashable,
                          initial_delay: Optional[float] = None) -> int:
        handle = self._next_handle()
        delay = self.jittered(interval, jitter) if initial_delay is None else initial_delay
        self.timers[handle] = self.loop.call_later(
            delay, self._fire_periodic, handle, interval, jitter, token
        )
        logger.debug(f"Scheduled periodic {token!r} every {interval}s +/- {jitter}s (handle {handle})")
        return handle

    def cancel(self, handle: int) -> bool:
        timer = self.timers.pop(handle, None)
        if timer is None:
            return False
        timer.cancel()
        return True

    def cancel_all(self):
        for timer in self.timers.values():
            timer.cancel()
        count = len(self.timers)
        self.timers.clear()
        logger.debug(f"Cancelled {count} timers")

    def _fire_once(self, handle: int, token: Hashable):
        self.timers.pop(handle, None)
        self._fire(token)

    def _fire_periodic(self, handle: int, interval: float, jitter: float, token: Hashable):
        # Rearm first so the action may cancel its own timer
        self.timers[handle] = self.loop.call_later(
            self.jittered(interval, jitter), self._fire_periodic, handle, interval, jitter, token
        )
        self._fire(token)
