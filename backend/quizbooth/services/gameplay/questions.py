from dataclasses import dataclass, field
from typing import List, Optional

from quizbooth.models import Game, Question as QuestionRow


@dataclass(frozen=True)
class Question:
    text: str
    options: List[str]
    correct_answer: int
    duration: int
    explanation: Optional[str] = field(default=None)

    def public_dict(self):
        """What the player may see before answering: no correct answer."""
        return {
            'text': self.text,
            'options': list(self.options),
            'duration': self.duration,
        }


class DatabaseQuestionProvider:
    """Ordered, read-only question lists from the ``game``/``question`` tables."""

    def __init__(self, default_duration: int = 30):
        self.default_duration = default_duration

    def get_questions(self, game_id: str) -> List[Question]:
        game = Game.query.get(game_id)
        if game is None:
            return []
        duration = int(game.question_duration or self.default_duration)
        rows = QuestionRow.query.filter_by(game_id=game_id).order_by(QuestionRow.position, QuestionRow.id).all()
        return [
            Question(
                text=row.text,
                options=row.option_list,
                correct_answer=row.correct_answer,
                duration=duration,
                explanation=row.explanation,
            )
            for row in rows
        ]


class StaticQuestionProvider:
    def __init__(self, questions_by_game):
        self.questions_by_game = questions_by_game

    def get_questions(self, game_id: str) -> List[Question]:
        return list(self.questions_by_game.get(game_id, []))
