"""Key-value state kept in memory and flushed to durable storage.

Two maps are served from memory (``users`` keyed by device identifier and
``scans`` keyed by scan identifier). Mutations mark keys dirty; ``flush``
writes the pending changes of one namespace in a single transaction. A failed
flush leaves the in-memory copy as it was and keeps the changes pending for
the next attempt.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Callable, Iterable, Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fridgesnap.models import StateEntry

logger = logging.getLogger(__name__)

USERS = "users"
SCANS = "scans"


class StorageError(RuntimeError):
    """Raised when durable storage cannot be read or written."""


class KeyValueStore(Protocol):
    def get(self, key: str) -> dict[str, Any] | None: ...

    def set(self, key: str, value: dict[str, Any]) -> None: ...

    def delete(self, key: str) -> None: ...

    def list(self) -> list[tuple[str, dict[str, Any]]]: ...


class StateBackend(Protocol):
    def load(self, namespace: str) -> dict[str, dict[str, Any]]: ...

    def save(
        self,
        namespace: str,
        upserts: dict[str, dict[str, Any]],
        deletes: Iterable[str],
    ) -> None: ...


class SqlStateBackend:
    """Persist namespaced JSON entries with SQLAlchemy."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def load(self, namespace: str) -> dict[str, dict[str, Any]]:
        try:
            with self._session_factory() as db:
                rows = db.execute(
                    select(StateEntry.key, StateEntry.payload).where(
                        StateEntry.namespace == namespace
                    )
                ).all()
        except SQLAlchemyError as exc:
            logger.exception("Failed to load %s state", namespace)
            raise StorageError(f"Failed to load {namespace}: {exc}") from exc
        return {key: payload for key, payload in rows if isinstance(payload, dict)}

    def save(
        self,
        namespace: str,
        upserts: dict[str, dict[str, Any]],
        deletes: Iterable[str],
    ) -> None:
        deletes = list(deletes)
        try:
            with self._session_factory() as db:
                if deletes:
                    db.execute(
                        delete(StateEntry).where(
                            StateEntry.namespace == namespace,
                            StateEntry.key.in_(deletes),
                        )
                    )
                for key, payload in upserts.items():
                    db.merge(StateEntry(namespace=namespace, key=key, payload=payload))
                db.commit()
        except SQLAlchemyError as exc:
            logger.exception("Failed to save %s state", namespace)
            raise StorageError(f"Failed to save {namespace}: {exc}") from exc


class MemoryStore:
    """In-memory map with an explicit flush to a durable backend."""

    def __init__(self, namespace: str, backend: StateBackend | None = None):
        self.namespace = namespace
        self._backend = backend
        self._data: dict[str, dict[str, Any]] = {}
        self._dirty: set[str] = set()
        self._deleted: set[str] = set()
        self._lock = threading.Lock()

    def get(self, key: str) -> dict[str, Any] | None:
        return self._data.get(key)

    def set(self, key: str, value: dict[str, Any]) -> None:
        with self._lock:
            self._data[key] = value
            self._dirty.add(key)
            self._deleted.discard(key)

    def delete(self, key: str) -> None:
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._deleted.add(key)
            self._dirty.discard(key)

    def list(self) -> list[tuple[str, dict[str, Any]]]:
        return list(self._data.items())

    def __len__(self) -> int:
        return len(self._data)

    @property
    def pending(self) -> bool:
        return bool(self._dirty or self._deleted)

    def load(self) -> int:
        if self._backend is None:
            return len(self._data)
        data = self._backend.load(self.namespace)
        with self._lock:
            self._data = data
            self._dirty.clear()
            self._deleted.clear()
        return len(data)

    def flush(self) -> None:
        if self._backend is None:
            return
        with self._lock:
            dirty, self._dirty = self._dirty, set()
            deleted, self._deleted = self._deleted, set()
            # Freeze the values so later in-place edits do not leak into the write.
            upserts = {
                key: json.loads(json.dumps(self._data[key]))
                for key in dirty
                if key in self._data
            }
        if not upserts and not deleted:
            return
        try:
            self._backend.save(self.namespace, upserts, deleted)
        except StorageError:
            with self._lock:
                self._dirty |= {key for key in dirty if key in self._data}
                self._deleted |= {key for key in deleted if key not in self._data}
            raise


class StateStore:
    """The two independently durable maps of the service."""

    def __init__(self, backend: StateBackend | None = None):
        self.users = MemoryStore(USERS, backend)
        self.scans = MemoryStore(SCANS, backend)

    def _namespaces(self, names: tuple[str, ...]) -> list[MemoryStore]:
        stores = {USERS: self.users, SCANS: self.scans}
        if not names:
            return list(stores.values())
        try:
            return [stores[name] for name in names]
        except KeyError as exc:
            raise ValueError(f"Unknown namespace: {exc.args[0]}") from exc

    def load(self) -> None:
        users = self.users.load()
        scans = self.scans.load()
        logger.info("State loaded: %d users, %d scans", users, scans)

    def flush(self, *namespaces: str) -> None:
        for store in self._namespaces(namespaces):
            store.flush()


__all__ = [
    "KeyValueStore",
    "MemoryStore",
    "SCANS",
    "SqlStateBackend",
    "StateBackend",
    "StateStore",
    "StorageError",
    "USERS",
]
