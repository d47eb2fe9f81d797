"""First-completion lock.

The first finished result set for a game is stored once, together with a
check value computed over its fields. Edits made to the stored record are
detected on read and the record is dropped. The check value is a plain
32-bit rolling hash: anyone who knows the formula can forge it, so this
gives tamper evidence only.
"""
import json
import logging
from typing import Optional

from .state import FinalResults
from .store import first_completion_key

logger = logging.getLogger(__name__)

HASH_FIELDS = (
    'gameId',
    'sessionId',
    'score',
    'correctAnswers',
    'totalQuestions',
    'timeSpent',
    'streak',
    'completedAt',
)

_BASE36 = '0123456789abcdefghijklmnopqrstuvwxyz'


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def _base36(value: int) -> str:
    if value == 0:
        return '0'
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return ''.join(reversed(digits))


def submission_hash(fields: dict) -> str:
    """Rolling hash over the ``|``-joined fields, formatted ``hash_<base36>``.

    Iterates UTF-16 code units so ids outside the BMP hash the same way the
    browser client hashes them.
    """
    joined = '|'.join(str(fields[name]) for name in HASH_FIELDS)
    encoded = joined.encode('utf-16-le')
    h = 0
    for i in range(0, len(encoded), 2):
        unit = encoded[i] | (encoded[i + 1] << 8)
        h = _to_int32((h << 5) - h + unit)
    return f"hash_{_base36(abs(h))}"


class CompletionLock:
    def __init__(self, kv):
        self.kv = kv

    def _purge(self, game_id: str) -> None:
        try:
            self.kv.delete(first_completion_key(game_id))
        except Exception as exc:
            logger.warning(f"[lock-purge-failed] game={game_id} error={exc}")

    def get_valid_record(self, game_id: str) -> Optional[dict]:
        """The stored record if its hash still matches, else ``None``.

        A record that fails verification is deleted. A backing that cannot
        be read counts as no record here.
        """
        try:
            return self._verified_record(game_id)
        except Exception as exc:
            logger.warning(f"[lock-load-failed] game={game_id} error={exc}")
            return None

    def _verified_record(self, game_id: str) -> Optional[dict]:
        # Errors from the backing itself propagate; only a bad record is purged
        raw = self.kv.get(first_completion_key(game_id))
        if not raw:
            return None
        try:
            record = json.loads(raw)
        except ValueError as exc:
            logger.warning(f"[lock-corrupt] game={game_id} error={exc}")
            self._purge(game_id)
            return None
        try:
            fields = {k: v for k, v in record.items() if k != 'submissionHash'}
            FinalResults.from_dict(fields)
            expected = submission_hash(fields)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.warning(f"[lock-corrupt] game={game_id} error={exc}")
            self._purge(game_id)
            return None
        if record.get('submissionHash') != expected:
            logger.warning(f"[lock-tampered] game={game_id} first completion record failed verification, removing")
            self._purge(game_id)
            return None
        return record

    def has_valid_record(self, game_id: str) -> bool:
        return self.get_valid_record(game_id) is not None

    def save(self, results: FinalResults) -> bool:
        """Store ``results`` as the first completion.

        ``False`` if one already exists or the stored one cannot be read.
        """
        try:
            existing = self._verified_record(results.game_id)
        except Exception as exc:
            logger.warning(f"[lock-load-failed] game={results.game_id} error={exc}, not saving")
            return False
        if existing is not None:
            logger.warning(f"[lock-exists] game={results.game_id} first completion already recorded")
            return False
        record = results.to_dict()
        record['submissionHash'] = submission_hash(record)
        try:
            self.kv.set(first_completion_key(results.game_id), json.dumps(record))
        except Exception as exc:
            logger.warning(f"[lock-save-failed] game={results.game_id} error={exc}")
            return False
        logger.info(
            f"[lock-saved] game={results.game_id} session={results.session_id} score={results.score}"
        )
        return True

    def is_first_completion(self, game_id: str, session_id: str) -> bool:
        record = self.get_valid_record(game_id)
        if record is None:
            return True
        return record.get('sessionId') == session_id

    def locked_results(self, game_id: str) -> Optional[FinalResults]:
        record = self.get_valid_record(game_id)
        if record is None:
            return None
        return FinalResults.from_dict(record)

    def clear(self, game_id: str) -> None:
        self._purge(game_id)
        logger.info(f"[lock-cleared] game={game_id}")
