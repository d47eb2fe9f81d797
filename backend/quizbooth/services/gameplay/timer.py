import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

IDLE = 'idle'
RUNNING = 'running'
ANSWERED = 'answered'
EXPIRED = 'expired'

DEFAULT_RESUME_BUFFER_SEC = 5
TICK_INTERVAL_SEC = 1.0


class TimerController:
    """Countdown for the active question: idle -> running -> answered | expired.

    With a scheduler the controller ticks itself once per second; without
    one the host calls ``tick()``. Every scheduled tick carries the
    generation it was armed for, and a tick from an older generation (a
    previous question, or a countdown since stopped) is ignored.

    ``on_expire`` receives the generation that expired. Scheduled ticks run
    holding ``lock``; an owner that shares its own lock here sees each tick
    and the expiry that follows as one step.
    """

    def __init__(self, scheduler=None, on_expire: Optional[Callable[[int], None]] = None,
                 resume_buffer: int = DEFAULT_RESUME_BUFFER_SEC, label: str = '', lock=None):
        self.scheduler = scheduler
        self.on_expire = on_expire
        self.resume_buffer = resume_buffer
        self.label = label
        self.lock = lock if lock is not None else threading.RLock()
        self.state = IDLE
        self.duration = 0
        self.remaining = 0
        self._generation = 0
        self._pending = None

    @property
    def generation(self) -> int:
        return self._generation

    def start(self, duration: int) -> None:
        self._run(duration, duration)

    def resume(self, saved_remaining: Optional[int], duration: int) -> int:
        """Restart from a persisted remaining time; returns the effective remaining.

        Less than ``resume_buffer`` seconds left gets the buffer added back
        (never beyond the full duration) so a reload cannot cost the player
        the question outright.
        """
        if saved_remaining is None:
            self.start(duration)
            return self.remaining
        if saved_remaining < self.resume_buffer:
            effective = min(saved_remaining + self.resume_buffer, duration)
            logger.info(
                f"[timer-resume-buffered] {self.label} saved={saved_remaining}s effective={effective}s"
            )
        else:
            effective = saved_remaining
        self._run(effective, duration)
        return self.remaining

    def _run(self, remaining: int, duration: int) -> None:
        self._cancel_pending()
        self._generation += 1
        self.duration = duration
        self.remaining = max(0, remaining)
        self.state = RUNNING
        logger.debug(f"[timer-set] {self.label} duration={duration}s remaining={self.remaining}s")
        if self.remaining == 0:
            self._expire()
            return
        self._schedule_tick()

    def _schedule_tick(self) -> None:
        if self.scheduler is None:
            return
        self._pending = self.scheduler.call_later(TICK_INTERVAL_SEC, self._scheduled_tick, self._generation)

    def _scheduled_tick(self, generation: int) -> None:
        with self.lock:
            if generation != self._generation:
                logger.debug(f"[timer-abort] {self.label} stale tick generation={generation}")
                return
            self._pending = None
            self.tick()

    def tick(self) -> None:
        if self.state != RUNNING:
            return
        # A host-driven tick replaces whatever tick was already scheduled
        self._cancel_pending()
        self.remaining = max(0, self.remaining - 1)
        if self.remaining == 0:
            self._expire()
            return
        self._schedule_tick()

    def _expire(self) -> None:
        self._cancel_pending()
        self.state = EXPIRED
        logger.info(f"[timer-fire] {self.label} expired")
        if self.on_expire is not None:
            self.on_expire(self._generation)

    def mark_answered(self) -> None:
        self._stop(ANSWERED)

    def cancel(self) -> None:
        self._stop(IDLE)

    def _stop(self, state: str) -> None:
        self._cancel_pending()
        self._generation += 1
        self.state = state

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def snapshot_remaining(self) -> Optional[int]:
        if self.state != RUNNING:
            return None
        return self.remaining

    def time_spent(self) -> int:
        return max(0, self.duration - self.remaining)
