"""Cooperative scheduling for the layout simulation.

The runner is the only background activity of the engine: an asyncio task
that performs one bounded tick per interval and yields. It sleeps once the
simulation settles and is woken by restarts. Stopping cancels the task, so
a torn-down view never receives another coordinate update.
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable

from memograph.config import settings
from memograph.layout.simulation import Simulation

logger = logging.getLogger(__name__)

TickListener = Callable[[Simulation], None]


class LayoutRunner:
    """Drives ``Simulation.tick`` from the event loop."""

    def __init__(self, simulation: Simulation, interval: float | None = None) -> None:
        self.simulation = simulation
        self.interval = settings.tick_interval if interval is None else interval
        self._listeners: list[TickListener] = []
        self._task: asyncio.Task | None = None
        self._wake: asyncio.Event | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running and self._task is not None and not self._task.done()

    def add_listener(self, listener: TickListener) -> Callable[[], None]:
        """Call ``listener`` after every tick; returns an unsubscribe function."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def start(self) -> None:
        """Begin ticking on the running event loop. Idempotent."""
        if self.running:
            return
        self._running = True
        self._wake = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("Layout runner started")

    def wake(self) -> None:
        """Resume ticking after a restart."""
        if self._wake is not None:
            self._wake.set()

    def request_restart(self, alpha: float | None = 1.0) -> None:
        """Reheat the simulation and wake the loop."""
        self.simulation.restart(alpha)
        self.wake()

    async def stop(self) -> None:
        """Cancel the tick loop and wait until it has exited."""
        self._running = False
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info(f"Layout runner stopped after {self.simulation.tick_count} ticks")

    async def _run(self) -> None:
        assert self._wake is not None
        while self._running:
            if not self.simulation.active:
                self._wake.clear()
                logger.debug(f"Layout settled at alpha {self.simulation.alpha:.4f}")
                await self._wake.wait()
                continue
            self.simulation.tick()
            for listener in list(self._listeners):
                listener(self.simulation)
            await asyncio.sleep(self.interval)


class Debouncer:
    """
    Coalesces bursts of calls into one invocation after ``delay`` seconds.

    Used for restarts triggered by sliders and resizes: intermediate values
    are skipped, the final call always fires. Without a running event loop
    (or with a zero delay) the action runs immediately.
    """

    def __init__(self, action: Callable[[], None], delay: float | None = None) -> None:
        self.action = action
        self.delay = settings.restart_debounce if delay is None else delay
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def __call__(self) -> None:
        if self.delay <= 0:
            self.action()
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.action()
            return
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self.delay, self._fire)

    def _fire(self) -> None:
        self._handle = None
        self.action()

    def flush(self) -> None:
        """Run a pending action now."""
        if self._handle is not None:
            self._handle.cancel()
            self._fire()

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
