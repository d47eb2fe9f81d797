"""String key/value backings for session records.

Every backing exposes ``get(key)``, ``set(key, value)`` and ``delete(key)``.
Backings are allowed to raise; the record stores above them turn failures
into warnings.
"""
from typing import Dict, Optional

from quizbooth import db
from quizbooth.models import StoredRecord


class MemoryKeyValueStore:
    """Process-local dict backing. Used in tests and when no database is configured."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data.keys())


class DatabaseKeyValueStore:
    """Backing on the ``stored_record`` table. Needs an active app context."""

    def get(self, key: str) -> Optional[str]:
        row = StoredRecord.query.get(key)
        return row.value if row else None

    def set(self, key: str, value: str) -> None:
        try:
            row = StoredRecord.query.get(key)
            if row is None:
                row = StoredRecord(key=key, value=value)
            else:
                row.value = value
            db.session.add(row)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    def delete(self, key: str) -> None:
        try:
            StoredRecord.query.filter_by(key=key).delete()
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise


class NamespacedKeyValueStore:
    """Scopes every key under ``<prefix>:<namespace>:`` so each client gets its own records."""

    def __init__(self, inner, prefix: str, namespace: str):
        self.inner = inner
        self.prefix = f"{prefix}:{namespace}:"

    def _key(self, key: str) -> str:
        return self.prefix + key

    def get(self, key: str) -> Optional[str]:
        return self.inner.get(self._key(key))

    def set(self, key: str, value: str) -> None:
        self.inner.set(self._key(key), value)

    def delete(self, key: str) -> None:
        self.inner.delete(self._key(key))
