"""Periodic credential refresh.

The scheduler runs one pass immediately, then one pass per tick, until the
stop event is set or a pass fails. Passes never overlap and are never
interrupted; the stop event is only looked at between passes.
"""

import queue
import signal
import threading
import time
from enum import Enum
from typing import Callable, Optional, Protocol

import structlog

from .auth.role_selector import RoleSelector
from .errors import RolehopError
from .profile_writer import ProfileWriter

logger = structlog.get_logger(__name__)

SHUTDOWN_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGINT", "SIGTERM", "SIGHUP") if hasattr(signal, name)
)


class StopEvent(Protocol):
    def is_set(self) -> bool: ...

    def wait(self, timeout: Optional[float] = None) -> bool: ...


class SchedulerState(str, Enum):
    """Lifecycle of a RefreshScheduler"""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class RefreshScheduler:
    """Drives RoleSelector passes on a fixed-rate timer.

    Ticks are measured from the start of the run. A tick that comes due while
    a pass is still running is dropped rather than queued.

    Attributes:
        state: Current lifecycle state
        passes: Number of passes that completed and were published
    """

    def __init__(
        self,
        selector: RoleSelector,
        writer: ProfileWriter,
        region: str,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.selector = selector
        self.writer = writer
        self.region = region
        self._clock = clock
        self.state = SchedulerState.IDLE
        self.passes = 0

    def tick(self) -> None:
        """Run one pass and publish its credential."""
        credential = self.selector.select_next()
        self.writer.publish(credential, self.region)
        self.passes += 1

    def run(self, stop_event: StopEvent, interval: float) -> None:
        """Refresh until ``stop_event`` is set or a pass fails.

        Args:
            stop_event: Cancellation signal, typically a ``threading.Event``
            interval: Seconds between ticks, must be positive

        Raises:
            ValueError: If ``interval`` is not positive
            RolehopError: The error of the pass that failed; the scheduler is
                stopped when it propagates
        """
        if interval <= 0:
            raise ValueError(f"Refresh interval must be positive, got {interval}")

        if self.state is not SchedulerState.IDLE:
            raise RuntimeError(f"Scheduler cannot be started from state {self.state.value}")

        self.state = SchedulerState.RUNNING
        try:
            if stop_event.is_set():
                logger.info("Stop requested before first refresh")
                return

            next_tick = self._clock() + interval

            try:
                self.tick()
            except RolehopError as e:
                logger.error("Initial tick failed", error=e.message, error_type=type(e).__name__)
                raise

            while True:
                if stop_event.wait(max(0.0, next_tick - self._clock())):
                    return

                # A stop that raced the tick wins
                if stop_event.is_set():
                    return

                try:
                    self.tick()
                except RolehopError as e:
                    logger.error("Tick failed", error=e.message, error_type=type(e).__name__)
                    raise

                logger.info("Credentials refresh", passes=self.passes)

                now = self._clock()
                next_tick += interval
                while next_tick <= now:
                    next_tick += interval
        finally:
            self.state = SchedulerState.STOPPED
            logger.debug("Scheduler stopped", passes=self.passes)


class SignalWatcher:
    """Sets ``stop_event`` from a watcher thread when a termination signal arrives.

    The handler only queues the signal number. The event is set on the
    watcher thread, since the main thread may be interrupted while it holds
    the event's lock inside ``wait()``.
    """

    def __init__(self, stop_event: threading.Event, signals=SHUTDOWN_SIGNALS):
        self.stop_event = stop_event
        self.signals = tuple(signals)
        self._received: queue.SimpleQueue = queue.SimpleQueue()
        self._previous: dict = {}
        self._thread = threading.Thread(target=self._watch, name="rolehop-signals", daemon=True)

    def _handle(self, signum, frame):
        # SimpleQueue.put is reentrant
        self._received.put(signum)

    def _watch(self) -> None:
        signum = self._received.get()
        if signum is None:
            return
        logger.info("Signal received, shutting down...", signal=signal.Signals(signum).name)
        self.stop_event.set()

    def start(self) -> "SignalWatcher":
        """Install the handlers and start the watcher. Must be called from the main thread."""
        for sig in self.signals:
            self._previous[sig] = signal.signal(sig, self._handle)
        self._thread.start()
        return self

    def stop(self) -> None:
        """Restore the previous handlers and release the watcher thread."""
        for sig, previous in self._previous.items():
            signal.signal(sig, previous)
        self._previous = {}
        self._received.put(None)
        self._thread.join(timeout=1)
