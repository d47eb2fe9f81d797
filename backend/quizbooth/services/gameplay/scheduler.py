import heapq
import itertools
import logging
import time
from typing import Callable, List, Tuple

from quizbooth import socketio

logger = logging.getLogger(__name__)


class ScheduledCall:
    """Handle for a pending callback. ``cancel()`` is safe to call more than once."""

    def __init__(self, due: float, callback: Callable, args: tuple):
        self.due = due
        self.callback = callback
        self.args = args
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.fired)

    def fire(self) -> None:
        if not self.pending:
            return
        self.fired = True
        self.callback(*self.args)


class BackgroundScheduler:
    """Runs callbacks after a delay on a Socket.IO background task.

    Each callback runs inside an app context so it can reach the database.
    A callback cancelled while its task sleeps is dropped when it wakes.
    """

    def __init__(self, app):
        self.app = app

    def call_later(self, delay: float, callback: Callable, *args) -> ScheduledCall:
        handle = ScheduledCall(time.time() + delay, callback, args)

        def _runner(h: ScheduledCall):
            sleep_for = max(0.0, h.due - time.time())
            if sleep_for:
                socketio.sleep(sleep_for)
            if not h.pending:
                return
            with self.app.app_context():
                try:
                    h.fire()
                except Exception:
                    logger.exception(f"[timer-error] callback={getattr(h.callback, '__name__', h.callback)}")

        socketio.start_background_task(_runner, handle)
        return handle


class ManualScheduler:
    """Runs callbacks only when ``advance()`` moves its clock forward.

    Used in tests and by hosts that drive the countdown themselves. Callbacks
    scheduled while advancing run in the same call if they fall due.
    """

    def __init__(self, start: float = 0.0):
        self.now = start
        self._queue: List[Tuple[float, int, ScheduledCall]] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable, *args) -> ScheduledCall:
        handle = ScheduledCall(self.now + delay, callback, args)
        heapq.heappush(self._queue, (handle.due, next(self._seq), handle))
        return handle

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, handle = heapq.heappop(self._queue)
            self.now = max(self.now, due)
            handle.fire()
        self.now = target

    def pending_count(self) -> int:
        return sum(1 for _, _, h in self._queue if h.pending)
