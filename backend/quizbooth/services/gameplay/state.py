"""Session and result records, and their JSON shapes.

Attributes are snake_case in Python; the stored JSON uses the camelCase
keys the web client reads (``sessionId``, ``currentQuestionIndex`` ...).
"""
import random
import string
import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Set


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_session_id(timestamp_ms: Optional[int] = None) -> str:
    """``session_<epoch ms>_<9 base36 chars>``."""
    if timestamp_ms is None:
        timestamp_ms = now_ms()
    suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"session_{timestamp_ms}_{suffix}"


def _int_keyed(mapping) -> Dict[int, int]:
    return {int(k): int(v) for k, v in (mapping or {}).items()}


@dataclass(frozen=True)
class FinalResults:
    score: int
    correct_answers: int
    total_questions: int
    time_spent: int
    streak: int
    game_id: str
    session_id: str
    completed_at: int

    def to_dict(self):
        return {
            'score': self.score,
            'correctAnswers': self.correct_answers,
            'totalQuestions': self.total_questions,
            'timeSpent': self.time_spent,
            'streak': self.streak,
            'gameId': self.game_id,
            'sessionId': self.session_id,
            'completedAt': self.completed_at,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            score=int(data['score']),
            correct_answers=int(data['correctAnswers']),
            total_questions=int(data['totalQuestions']),
            time_spent=int(data['timeSpent']),
            streak=int(data['streak']),
            game_id=str(data['gameId']),
            session_id=str(data['sessionId']),
            completed_at=int(data['completedAt']),
        )


@dataclass
class GameSession:
    session_id: str
    game_id: str
    start_time: int
    last_updated: int
    current_question_index: int = 0
    selected_answers: Dict[int, int] = field(default_factory=dict)
    answered_questions: Set[int] = field(default_factory=set)
    question_start_times: Dict[int, int] = field(default_factory=dict)
    score: int = 0
    correct_answers: int = 0
    wrong_answers: int = 0
    streak: int = 0
    total_time: int = 0
    current_question_time_left: Optional[int] = None
    is_completed: bool = False
    final_results: Optional[FinalResults] = None

    @classmethod
    def create(cls, game_id: str, timestamp_ms: Optional[int] = None) -> 'GameSession':
        if timestamp_ms is None:
            timestamp_ms = now_ms()
        return cls(
            session_id=generate_session_id(timestamp_ms),
            game_id=game_id,
            start_time=timestamp_ms,
            last_updated=timestamp_ms,
        )

    def is_answered(self, question_index: int) -> bool:
        return question_index in self.answered_questions

    def to_dict(self):
        data = {
            'sessionId': self.session_id,
            'gameId': self.game_id,
            'currentQuestionIndex': self.current_question_index,
            'selectedAnswers': {str(k): v for k, v in self.selected_answers.items()},
            'answeredQuestions': sorted(self.answered_questions),
            'questionStartTimes': {str(k): v for k, v in self.question_start_times.items()},
            'score': self.score,
            'correctAnswers': self.correct_answers,
            'wrongAnswers': self.wrong_answers,
            'streak': self.streak,
            'totalTime': self.total_time,
            'startTime': self.start_time,
            'lastUpdated': self.last_updated,
            'isCompleted': self.is_completed,
        }
        # Optional fields are omitted rather than written as null
        if self.current_question_time_left is not None:
            data['currentQuestionTimeLeft'] = self.current_question_time_left
        if self.final_results is not None:
            data['finalResults'] = self.final_results.to_dict()
        return data

    @classmethod
    def from_dict(cls, data):
        """Rebuild a session; raises KeyError/TypeError/ValueError on a malformed record."""
        if not isinstance(data, dict):
            raise TypeError(f"expected a JSON object, got {type(data).__name__}")
        time_left = data.get('currentQuestionTimeLeft')
        final = data.get('finalResults')
        return cls(
            session_id=str(data['sessionId']),
            game_id=str(data['gameId']),
            start_time=int(data['startTime']),
            last_updated=int(data['lastUpdated']),
            current_question_index=int(data.get('currentQuestionIndex', 0)),
            selected_answers=_int_keyed(data.get('selectedAnswers')),
            answered_questions={int(i) for i in data.get('answeredQuestions') or []},
            question_start_times=_int_keyed(data.get('questionStartTimes')),
            score=int(data.get('score', 0)),
            correct_answers=int(data.get('correctAnswers', 0)),
            wrong_answers=int(data.get('wrongAnswers', 0)),
            streak=int(data.get('streak', 0)),
            total_time=int(data.get('totalTime', 0)),
            current_question_time_left=int(time_left) if time_left is not None else None,
            is_completed=bool(data.get('isCompleted', False)),
            final_results=FinalResults.from_dict(final) if final else None,
        )
