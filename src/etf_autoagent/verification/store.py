"""Key-value stores with per-entry expiry for verification state.

Expired entries are evicted lazily on read and in bulk by
``purge_expired``. Values are JSON-compatible dicts.
"""

import copy
import json
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from sqlalchemy import delete, select

from etf_autoagent.persistence.db import init_database
from etf_autoagent.persistence.models import KeyValueRow

Clock = Callable[[], float]


class KeyValueStore(ABC):
    """Abstract store of JSON documents keyed by string."""

    @abstractmethod
    def get(self, key: str) -> Optional[dict[str, Any]]:
        """Returns the value, or None when absent or expired."""
        pass  # pragma: no cover

    @abstractmethod
    def set(
        self, key: str, value: dict[str, Any], ttl_seconds: Optional[float] = None
    ) -> None:
        """Stores a value, replacing any previous one.

        Args:
            key: Entry key.
            value: JSON-compatible document.
            ttl_seconds: Lifetime from now; None keeps the entry forever.
        """
        pass  # pragma: no cover

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Removes an entry, returning whether it existed."""
        pass  # pragma: no cover

    @abstractmethod
    def items(self) -> list[tuple[str, dict[str, Any]]]:
        """Returns every unexpired entry."""
        pass  # pragma: no cover

    @abstractmethod
    def purge_expired(self) -> int:
        """Deletes expired entries and returns how many were removed."""
        pass  # pragma: no cover

    def contains(self, key: str) -> bool:
        return self.get(key) is not None


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store backed by a dict."""

    def __init__(self, clock: Clock = time.time):
        self._clock = clock
        self._data: dict[str, tuple[dict[str, Any], Optional[float]]] = {}

    def _expired(self, expires_at: Optional[float]) -> bool:
        return expires_at is not None and self._clock() >= expires_at

    def get(self, key: str) -> Optional[dict[str, Any]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._expired(expires_at):
            del self._data[key]
            return None
        return copy.deepcopy(value)

    def set(
        self, key: str, value: dict[str, Any], ttl_seconds: Optional[float] = None
    ) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds is not None else None
        self._data[key] = (copy.deepcopy(value), expires_at)

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def items(self) -> list[tuple[str, dict[str, Any]]]:
        self.purge_expired()
        return [(k, copy.deepcopy(v)) for k, (v, _) in self._data.items()]

    def purge_expired(self) -> int:
        expired = [k for k, (_, exp) in self._data.items() if self._expired(exp)]
        for key in expired:
            del self._data[key]
        return len(expired)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo on the way back.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SQLKeyValueStore(KeyValueStore):
    """Store persisted in the ``kv_entries`` table, one namespace per instance."""

    def __init__(self, session_factory, namespace: str, clock: Clock = time.time):
        self._session_factory = session_factory
        self.namespace = namespace
        self._clock = clock

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def _is_expired(self, row: KeyValueRow) -> bool:
        expires_at = _as_utc(row.expires_at)
        return expires_at is not None and self._now() >= expires_at

    def _select(self, key: str):
        return select(KeyValueRow).where(
            KeyValueRow.namespace == self.namespace, KeyValueRow.key == key
        )

    def get(self, key: str) -> Optional[dict[str, Any]]:
        with self._session_factory() as db:
            row = db.execute(self._select(key)).scalar_one_or_none()
            if row is None:
                return None
            if self._is_expired(row):
                db.delete(row)
                db.commit()
                return None
            return json.loads(row.value_json)

    def set(
        self, key: str, value: dict[str, Any], ttl_seconds: Optional[float] = None
    ) -> None:
        now = self._now()
        expires_at = (
            datetime.fromtimestamp(self._clock() + ttl_seconds, tz=timezone.utc)
            if ttl_seconds is not None
            else None
        )
        with self._session_factory() as db:
            row = db.execute(self._select(key)).scalar_one_or_none()
            if row is None:
                db.add(
                    KeyValueRow(
                        namespace=self.namespace,
                        key=key,
                        value_json=json.dumps(value, ensure_ascii=False),
                        expires_at=expires_at,
                        updated_at=now,
                    )
                )
            else:
                row.value_json = json.dumps(value, ensure_ascii=False)
                row.expires_at = expires_at
                row.updated_at = now
            db.commit()

    def delete(self, key: str) -> bool:
        with self._session_factory() as db:
            result = db.execute(
                delete(KeyValueRow).where(
                    KeyValueRow.namespace == self.namespace, KeyValueRow.key == key
                )
            )
            db.commit()
            return result.rowcount > 0

    def items(self) -> list[tuple[str, dict[str, Any]]]:
        self.purge_expired()
        with self._session_factory() as db:
            rows = (
                db.execute(
                    select(KeyValueRow).where(KeyValueRow.namespace == self.namespace)
                )
                .scalars()
                .all()
            )
            return [(r.key, json.loads(r.value_json)) for r in rows]

    def purge_expired(self) -> int:
        with self._session_factory() as db:
            rows = (
                db.execute(
                    select(KeyValueRow).where(
                        KeyValueRow.namespace == self.namespace,
                        KeyValueRow.expires_at.is_not(None),
                    )
                )
                .scalars()
                .all()
            )
            expired = [r for r in rows if self._is_expired(r)]
            for row in expired:
                db.delete(row)
            db.commit()
            return len(expired)


class VerificationStores:
    """The three namespaces the verification server keeps.

    Attributes:
        verifications: Completed records keyed by lower-cased wallet.
        pending_oauth: OAuth authorizations keyed by ``state``.
        bio_challenges: Bio challenges keyed by ``{wallet}_{handle}``.
    """

    def __init__(
        self,
        verifications: KeyValueStore,
        pending_oauth: KeyValueStore,
        bio_challenges: KeyValueStore,
    ):
        self.verifications = verifications
        self.pending_oauth = pending_oauth
        self.bio_challenges = bio_challenges

    @classmethod
    def in_memory(cls, clock: Clock = time.time) -> "VerificationStores":
        return cls(
            InMemoryKeyValueStore(clock),
            InMemoryKeyValueStore(clock),
            InMemoryKeyValueStore(clock),
        )

    @classmethod
    def from_database_url(cls, db_url: str, clock: Clock = time.time) -> "VerificationStores":
        factory = init_database(db_url)
        return cls(
            SQLKeyValueStore(factory, "verifications", clock),
            SQLKeyValueStore(factory, "pending_oauth", clock),
            SQLKeyValueStore(factory, "bio_challenges", clock),
        )

    def purge_expired(self) -> int:
        return (
            self.verifications.purge_expired()
            + self.pending_oauth.purge_expired()
            + self.bio_challenges.purge_expired()
        )
