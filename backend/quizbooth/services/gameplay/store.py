import json
import logging
import time
from typing import Callable, Optional

from .state import FinalResults, GameSession

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL_SEC = 24 * 60 * 60


def session_key(game_id: str) -> str:
    return f"session:{game_id}"


def results_key(game_id: str) -> str:
    return f"results:{game_id}"


def first_completion_key(game_id: str) -> str:
    return f"first-completion:{game_id}"


class SessionStore:
    """Load/save GameSession records without ever raising.

    A session is stored inside an envelope carrying its expiry::

        {"state": {...GameSession...}, "expiresAt": <epoch ms>}

    Missing, expired and undecodable envelopes all load as ``None``.
    """

    def __init__(self, kv, ttl_sec: int = DEFAULT_SESSION_TTL_SEC, clock: Callable[[], float] = time.time):
        self.kv = kv
        self.ttl_sec = ttl_sec
        self.clock = clock

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def create_initial(self, game_id: str) -> GameSession:
        return GameSession.create(game_id, timestamp_ms=self._now_ms())

    def load(self, game_id: str) -> Optional[GameSession]:
        try:
            raw = self.kv.get(session_key(game_id))
        except Exception as exc:
            logger.warning(f"[session-load-failed] game={game_id} error={exc}")
            return None
        if not raw:
            return None
        try:
            envelope = json.loads(raw)
            expires_at = int(envelope['expiresAt'])
            session = GameSession.from_dict(envelope['state'])
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning(f"[session-corrupt] game={game_id} error={exc}")
            self.clear(game_id)
            return None
        if self._now_ms() > expires_at:
            logger.info(f"[session-expired] game={game_id} session={session.session_id}")
            self.clear(game_id)
            return None
        return session

    def save(self, game_id: str, session: GameSession) -> None:
        envelope = {
            'state': session.to_dict(),
            'expiresAt': self._now_ms() + self.ttl_sec * 1000,
        }
        try:
            self.kv.set(session_key(game_id), json.dumps(envelope))
        except Exception as exc:
            logger.warning(f"[session-save-failed] game={game_id} error={exc}")

    def clear(self, game_id: str) -> None:
        try:
            self.kv.delete(session_key(game_id))
        except Exception as exc:
            logger.warning(f"[session-clear-failed] game={game_id} error={exc}")

    def has_valid_session(self, game_id: str) -> bool:
        return self.load(game_id) is not None


class ResultsStore:
    """The ``results:{gameId}`` record, kept after the session itself is gone."""

    def __init__(self, kv):
        self.kv = kv

    def save(self, results: FinalResults) -> None:
        try:
            self.kv.set(results_key(results.game_id), json.dumps(results.to_dict()))
        except Exception as exc:
            logger.warning(f"[results-save-failed] game={results.game_id} error={exc}")

    def load(self, game_id: str) -> Optional[FinalResults]:
        try:
            raw = self.kv.get(results_key(game_id))
        except Exception as exc:
            logger.warning(f"[results-load-failed] game={game_id} error={exc}")
            return None
        if not raw:
            return None
        try:
            return FinalResults.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning(f"[results-corrupt] game={game_id} error={exc}")
            return None

    def clear(self, game_id: str) -> None:
        try:
            self.kv.delete(results_key(game_id))
        except Exception as exc:
            logger.warning(f"[results-clear-failed] game={game_id} error={exc}")
