"""Player feedback output (the correct/incorrect sound cue and friends).

One feedback object is built by the hosting layer and handed to each
session machine.
"""
from quizbooth import socketio


class NullFeedback:
    def answer(self, game_id: str, is_correct: bool, points: int) -> None:
        pass

    def expired(self, game_id: str, question_index: int) -> None:
        pass


class SocketFeedback(NullFeedback):
    """Pushes feedback to the game's room on the ``/ws`` namespace; the client plays the cue."""

    def answer(self, game_id, is_correct, points):
        socketio.emit(
            'answer_feedback',
            {'game_id': game_id, 'correct': is_correct, 'points': points},
            to=f"game:{game_id}",
            namespace='/ws',
        )

    def expired(self, game_id, question_index):
        socketio.emit(
            'question_expired',
            {'game_id': game_id, 'question_index': question_index},
            to=f"game:{game_id}",
            namespace='/ws',
        )
