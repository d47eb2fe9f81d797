from typing import NamedTuple

BASE_POINTS = 100
TIME_BONUS_PER_SECOND = 2
STREAK_BONUS_PER_ANSWER = 10


class ScoreResult(NamedTuple):
    points: int
    new_streak: int


def compute_score(question_duration: int, time_spent: int, streak_before: int, is_correct: bool) -> ScoreResult:
    """Points earned for one answer and the streak that follows it.

    A correct answer earns the base points, two points per second left on
    the clock and ten points per answer already in the streak. A wrong
    answer earns nothing and breaks the streak.
    """
    if not is_correct:
        return ScoreResult(points=0, new_streak=0)
    time_bonus = max(0, question_duration - time_spent) * TIME_BONUS_PER_SECOND
    streak_bonus = streak_before * STREAK_BONUS_PER_ANSWER
    return ScoreResult(
        points=BASE_POINTS + time_bonus + streak_bonus,
        new_streak=streak_before + 1,
    )
