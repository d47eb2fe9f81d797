"""Session lifecycle: no_session -> active -> completing -> cleared.

The machine is driven by named events from the hosting layer
(``initialize``, ``submit_answer``, ``advance``, ``tick``,
``persist_timer_on_unload``, ``suspend``, ``reset``) plus the timer's own
expiry. Every mutation is written through the SessionStore straight away so a reload
can pick the game back up where it stopped.
"""
import logging
import threading
import time
from typing import Callable, Optional

from .feedback import NullFeedback
from .scoring import ScoreResult, compute_score
from .state import FinalResults, GameSession
from .timer import DEFAULT_RESUME_BUFFER_SEC, EXPIRED, TimerController

logger = logging.getLogger(__name__)

NO_SESSION = 'no_session'
ACTIVE = 'active'
COMPLETING = 'completing'
CLEARED = 'cleared'

DEFAULT_CLEAR_DELAY_SEC = 5.0


class SessionMachine:
    def __init__(self, store, results, lock, question_provider, scheduler, feedback=None,
                 clock: Callable[[], float] = time.time,
                 clear_delay: float = DEFAULT_CLEAR_DELAY_SEC,
                 resume_buffer: int = DEFAULT_RESUME_BUFFER_SEC,
                 on_release: Optional[Callable[['SessionMachine'], None]] = None):
        self.store = store
        self.results = results
        self.lock = lock
        self.question_provider = question_provider
        self.scheduler = scheduler
        self.feedback = feedback or NullFeedback()
        self.clock = clock
        self.clear_delay = clear_delay
        self.state = NO_SESSION
        self.game_id: Optional[str] = None
        self.session: Optional[GameSession] = None
        self.questions = []
        # Verdict of the completion lock for this session, None until known
        self.first_completion: Optional[bool] = None
        # Called once the machine holds nothing worth keeping in memory
        self.on_release = on_release
        # Timer ticks arrive on scheduler tasks; player events on request threads
        self._mutex = threading.RLock()
        self.timer = TimerController(
            scheduler, on_expire=self._on_timer_expired, resume_buffer=resume_buffer,
            lock=self._mutex,
        )
        self._pending_clear = None

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    @property
    def current_question(self):
        if self.session is None:
            return None
        idx = self.session.current_question_index
        if 0 <= idx < len(self.questions):
            return self.questions[idx]
        return None

    @property
    def is_answered(self) -> bool:
        if self.session is None:
            return False
        return self.session.is_answered(self.session.current_question_index)

    def initialize(self, game_id: str) -> GameSession:
        with self._mutex:
            self._cancel_scheduled()
            self.game_id = game_id
            self.timer.label = f"game={game_id}"
            self.questions = self.question_provider.get_questions(game_id)
            self.first_completion = None
            session = self.store.load(game_id)
            if session is None:
                self.session = self.store.create_initial(game_id)
                self.state = ACTIVE
                logger.info(f"[session-created] game={game_id} session={self.session.session_id}")
                if self.current_question is not None:
                    self._start_question()
                else:
                    self._persist()
                return self.session

            self.session = session
            logger.info(
                f"[session-resumed] game={game_id} session={session.session_id} "
                f"question={session.current_question_index} completed={session.is_completed}"
            )
            if session.is_completed:
                # Reloaded during the results window: keep it readable until the clear fires
                self.state = COMPLETING
                self.first_completion = self.lock.is_first_completion(game_id, session.session_id)
                self._schedule_clear()
                return session

            self.state = ACTIVE
            question = self.current_question
            if question is None:
                self._complete()
            elif self.is_answered:
                self.timer.mark_answered()
            else:
                saved = session.current_question_time_left
                if saved is not None:
                    # Consumed by this resume; the live countdown owns the time from here
                    session.current_question_time_left = None
                    self._persist()
                self.timer.resume(saved, question.duration)
            return self.session

    def submit_answer(self, answer_index: int) -> Optional[ScoreResult]:
        """Score the current question. ``None`` when the answer is ignored."""
        with self._mutex:
            if self.state != ACTIVE or self.session is None:
                return None
            question = self.current_question
            if question is None or self.is_answered or self.timer.state == EXPIRED:
                return None
            session = self.session
            idx = session.current_question_index
            time_spent = self.timer.time_spent()
            self.timer.mark_answered()

            is_correct = answer_index == question.correct_answer
            result = compute_score(question.duration, time_spent, session.streak, is_correct)
            session.score += result.points
            if is_correct:
                session.correct_answers += 1
            else:
                session.wrong_answers += 1
            session.streak = result.new_streak
            session.total_time += time_spent
            session.selected_answers[idx] = answer_index
            session.answered_questions.add(idx)
            session.current_question_time_left = None
            self._persist()
            logger.info(
                f"[answer] game={self.game_id} question={idx} correct={is_correct} "
                f"points={result.points} streak={result.new_streak} time_spent={time_spent}s"
            )
            self.feedback.answer(self.game_id, is_correct, result.points)
            return result

    def advance(self) -> None:
        with self._mutex:
            if self.state != ACTIVE or self.session is None:
                return
            self.timer.cancel()
            session = self.session
            if session.current_question_index < len(self.questions) - 1:
                session.current_question_index += 1
                session.current_question_time_left = None
                self._start_question()
            else:
                self._complete()

    def tick(self) -> None:
        """One elapsed second, for hosts that drive the clock themselves."""
        with self._mutex:
            if self.state == ACTIVE:
                self.timer.tick()

    def persist_timer_on_unload(self) -> bool:
        """Save the running countdown, then suspend. ``True`` if a time was saved."""
        with self._mutex:
            saved = False
            if (self.state == ACTIVE and self.session is not None
                    and self.current_question is not None and not self.is_answered):
                remaining = self.timer.snapshot_remaining()
                if remaining is not None:
                    self.session.current_question_time_left = remaining
                    self._persist()
                    logger.info(f"[timer-saved] game={self.game_id} remaining={remaining}s")
                    saved = True
            self.suspend()
            return saved

    def suspend(self) -> None:
        """Stop the countdown and any pending clear while the player is away.

        The stored session is left as it is; the next ``initialize`` picks it
        back up.
        """
        with self._mutex:
            if self.state == NO_SESSION:
                return
            self._cancel_scheduled()
            self.state = NO_SESSION
            logger.info(f"[session-suspended] game={self.game_id}")
            self._release()

    def reset(self, game_id: str) -> GameSession:
        """Throw the stored session away and start over. The completion lock is left alone."""
        with self._mutex:
            self._cancel_scheduled()
            self.store.clear(game_id)
            self.session = None
            self.state = NO_SESSION
            logger.info(f"[session-reset] game={game_id}")
            return self.initialize(game_id)

    def teardown(self) -> None:
        with self._mutex:
            self._cancel_scheduled()
            self._release()

    def _release(self) -> None:
        if self.on_release is not None:
            self.on_release(self)

    def _start_question(self) -> None:
        session = self.session
        question = self.current_question
        session.question_start_times[session.current_question_index] = self._now_ms()
        self._persist()
        self.timer.start(question.duration)

    def _complete(self) -> None:
        session = self.session
        now = self._now_ms()
        final = FinalResults(
            score=session.score,
            correct_answers=session.correct_answers,
            total_questions=len(self.questions),
            time_spent=max(0, (now - session.start_time) // 1000),
            streak=session.streak,
            game_id=session.game_id,
            session_id=session.session_id,
            completed_at=now,
        )
        self.results.save(final)
        self.first_completion = self.lock.save(final)
        session.final_results = final
        session.is_completed = True
        session.current_question_time_left = None
        self._persist()
        self.state = COMPLETING
        logger.info(
            f"[session-complete] game={session.game_id} session={session.session_id} "
            f"score={final.score} correct={final.correct_answers}/{final.total_questions} "
            f"first_completion={self.first_completion}"
        )
        self._schedule_clear()

    def _schedule_clear(self) -> None:
        self._pending_clear = self.scheduler.call_later(
            self.clear_delay, self._clear_completed, self.session.session_id
        )

    def _clear_completed(self, session_id: str) -> None:
        with self._mutex:
            self._pending_clear = None
            if self.state != COMPLETING or self.session is None or self.session.session_id != session_id:
                logger.debug(f"[clear-abort] game={self.game_id} session={session_id} no longer current")
                return
            self.store.clear(self.game_id)
            self.session = None
            self.state = CLEARED
            logger.info(f"[session-cleared] game={self.game_id} session={session_id}")
            self._release()

    def _on_timer_expired(self, generation: int) -> None:
        with self._mutex:
            if generation != self.timer.generation:
                logger.debug(f"[expiry-abort] game={self.game_id} stale generation={generation}")
                return
            if self.state != ACTIVE or self.session is None or self.is_answered:
                return
            idx = self.session.current_question_index
            logger.info(f"[question-expired] game={self.game_id} question={idx}")
            self.feedback.expired(self.game_id, idx)
            self.advance()

    def _cancel_scheduled(self) -> None:
        self.timer.cancel()
        if self._pending_clear is not None:
            self._pending_clear.cancel()
            self._pending_clear = None

    def _persist(self) -> None:
        self.session.last_updated = self._now_ms()
        self.store.save(self.game_id, self.session)

    def to_dict(self):
        """View model for the rendering layer."""
        question = self.current_question
        payload = {
            'state': self.state,
            'gameId': self.game_id,
            'session': self.session.to_dict() if self.session else None,
            'totalQuestions': len(self.questions),
            'timeLeft': self.timer.snapshot_remaining(),
            'timerState': self.timer.state,
            'isAnswered': self.is_answered,
            'isFirstCompletion': self.first_completion,
            'currentQuestion': None,
        }
        if question is not None and self.state == ACTIVE:
            current = question.public_dict()
            current['index'] = self.session.current_question_index
            if self.is_answered:
                current['correctAnswer'] = question.correct_answer
                current['explanation'] = question.explanation
            payload['currentQuestion'] = current
        return payload
