# -*- coding: utf-8 -*-
"""Search history store.

Keeps the user's recent query terms as a bounded, de-duplicated,
most-recent-first list, JSON-encoded under one fixed key of a generic
key/value store.
"""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, UTC
from typing import Callable, Protocol

from sqlalchemy.orm import Session

from src.core.config import get_settings
from src.models.db_models import KeyValueEntry

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 10


class KeyValueStore(Protocol):
    """Minimal persistence interface used by the history store."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class InMemoryKeyValueStore:
    """Key/value store living only as long as the process."""

    def __init__(self):
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class SqlKeyValueStore:
    """Key/value store backed by the `search_kv` table."""

    def __init__(self, session_factory: Callable[[], Session]):
        """Initialize with a session factory.

        Args:
            session_factory: Callable returning a new SQLAlchemy session
        """
        self._session_factory = session_factory

    def get(self, key: str) -> str | None:
        db = self._session_factory()
        try:
            entry = db.get(KeyValueEntry, key)
            return entry.value if entry else None
        finally:
            db.close()

    def set(self, key: str, value: str) -> None:
        db = self._session_factory()
        try:
            entry = db.get(KeyValueEntry, key)
            if entry:
                entry.value = value
                entry.updated_at = datetime.now(UTC)
            else:
                db.add(KeyValueEntry(key=key, value=value))
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


class HistoryStore:
    """Bounded most-recent-first list of search terms.

    Example:
        ```python
        history = HistoryStore(InMemoryKeyValueStore())
        history.record("salle A")
        history.record("physique")
        history.record("salle A")
        history.load()  # ["salle A", "physique"]
        ```
    """

    def __init__(
        self,
        storage: KeyValueStore,
        key: str = "smart_search_history",
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ):
        """Initialize the store.

        Args:
            storage: Backing key/value store
            key: Key under which the history is kept
            max_entries: Maximum number of terms retained
        """
        self._storage = storage
        self._key = key
        self._max_entries = max_entries
        self._entries: list[str] | None = None
        self._session_only = False
        self._writer: ThreadPoolExecutor | None = None

    @property
    def max_entries(self) -> int:
        return self._max_entries

    @property
    def session_only(self) -> bool:
        """True once a persist failure degraded the store to memory."""
        return self._session_only

    def _read_storage(self) -> list[str]:
        try:
            raw = self._storage.get(self._key)
        except Exception as e:
            logger.warning(f"Could not read search history: {e}")
            return []

        if not raw:
            return []

        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Stored search history is not valid JSON, ignoring it")
            return []

        if not isinstance(data, list):
            return []
        return [term for term in data if isinstance(term, str) and term][: self._max_entries]

    def load(self) -> list[str]:
        """Return the history, most recent first. Never raises."""
        if self._entries is None:
            self._entries = self._read_storage()
        return list(self._entries)

    @property
    def writer(self) -> ThreadPoolExecutor:
        """Single worker thread, so queued writes land in submission order."""
        if self._writer is None:
            self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="history-writer")
        return self._writer

    def remember(self, term: str) -> list[str]:
        """Move `term` to the front of the in-memory history without writing it.

        An existing exact (case-sensitive) occurrence is removed rather than
        duplicated. Empty terms are ignored.

        Returns:
            The updated history, to be handed to `persist`
        """
        if not term:
            return self.load()

        entries = [t for t in self.load() if t != term]
        entries.insert(0, term)
        self._entries = entries[: self._max_entries]
        return list(self._entries)

    def record(self, term: str) -> None:
        """Move `term` to the front of the history and persist it."""
        if not term:
            return
        self.persist(self.remember(term))

    def clear(self) -> None:
        """Remove every history entry."""
        self._entries = []
        self.persist([])

    def persist(self, entries: list[str] | None = None) -> None:
        """Write `entries` (default: the in-memory history) to storage.

        Blocking. A failure degrades the store to session-only and is never
        raised.
        """
        if self._session_only:
            return
        if entries is None:
            entries = self.load()
        try:
            self._storage.set(self._key, json.dumps(entries))
        except Exception as e:
            logger.warning(f"Could not persist search history, keeping it in memory: {e}")
            self._session_only = True


# Application-wide history store
_history_store: HistoryStore | None = None


def get_history_store() -> HistoryStore:
    """Get the global history store, backed by the application database.

    Returns:
        HistoryStore singleton instance
    """
    global _history_store
    if _history_store is None:
        from src.core.database import SessionLocal

        settings = get_settings()
        _history_store = HistoryStore(
            SqlKeyValueStore(SessionLocal),
            key=settings.history_storage_key,
            max_entries=settings.history_max_entries,
        )
    return _history_store


def reset_history_store() -> None:
    """Reset the global history store (for testing)."""
    global _history_store
    _history_store = None
