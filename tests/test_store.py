from __future__ import annotations

import pytest
from sqlalchemy import Text
from sqlalchemy.exc import OperationalError

from fridgesnap.db import dispose_db, init_db
from fridgesnap.models import StateEntry
from fridgesnap.services.store import (
    SCANS,
    USERS,
    MemoryStore,
    SqlStateBackend,
    StateStore,
    StorageError,
)


@pytest.fixture
def backend(settings):
    session_factory = init_db(settings)
    yield SqlStateBackend(session_factory)
    dispose_db()


class _FailingBackend:
    def __init__(self):
        self.fail = True
        self.saved = []

    def load(self, namespace):
        return {}

    def save(self, namespace, upserts, deletes):
        if self.fail:
            raise StorageError("disk full")
        self.saved.append((namespace, upserts, set(deletes)))


def test_memory_store_without_backend():
    store = MemoryStore("users")
    store.set("a", {"x": 1})
    assert store.get("a") == {"x": 1}
    assert store.list() == [("a", {"x": 1})]
    store.delete("a")
    assert store.get("a") is None
    store.flush()


def test_flush_round_trip(backend):
    state = StateStore(backend)
    state.users.set("device-1", {"isPremium": True, "freeUsedThisWeek": 2})
    state.scans.set("scan-1", {"deviceId": "device-1", "nutritionGoals": ["keto"]})
    state.flush()

    reloaded = StateStore(backend)
    reloaded.load()
    assert reloaded.users.get("device-1") == {"isPremium": True, "freeUsedThisWeek": 2}
    assert reloaded.scans.get("scan-1")["nutritionGoals"] == ["keto"]


def test_flush_applies_deletes(backend):
    state = StateStore(backend)
    state.scans.set("scan-1", {"deviceId": "d"})
    state.scans.set("scan-2", {"deviceId": "d"})
    state.flush(SCANS)
    state.scans.delete("scan-1")
    state.flush(SCANS)

    assert set(backend.load(SCANS)) == {"scan-2"}


def test_namespaces_flush_independently(backend):
    state = StateStore(backend)
    state.users.set("device-1", {"isPremium": False})
    state.scans.set("scan-1", {"deviceId": "device-1"})
    state.flush(USERS)

    assert backend.load(USERS) == {"device-1": {"isPremium": False}}
    assert backend.load(SCANS) == {}
    assert state.scans.pending


def test_unknown_namespace_rejected():
    with pytest.raises(ValueError):
        StateStore().flush("photos")


def test_failed_flush_keeps_memory_and_pending_changes():
    failing = _FailingBackend()
    store = MemoryStore(USERS, failing)
    store.set("device-1", {"freeUsedThisWeek": 1})
    store.set("device-2", {"freeUsedThisWeek": 2})

    with pytest.raises(StorageError):
        store.flush()
    assert store.get("device-1") == {"freeUsedThisWeek": 1}
    assert store.pending

    failing.fail = False
    store.flush()
    namespace, upserts, _ = failing.saved[-1]
    assert namespace == USERS
    assert set(upserts) == {"device-1", "device-2"}
    assert not store.pending


def test_flush_snapshot_is_detached_from_memory():
    failing = _FailingBackend()
    failing.fail = False
    store = MemoryStore(SCANS, failing)
    record = {"equipment": ["pan"]}
    store.set("scan-1", record)
    store.flush()
    record["equipment"].append("oven")
    assert failing.saved[-1][1]["scan-1"] == {"equipment": ["pan"]}


def test_backend_wraps_sqlalchemy_errors():
    def _broken_session():
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    backend = SqlStateBackend(_broken_session)
    with pytest.raises(StorageError):
        backend.load(USERS)
    with pytest.raises(StorageError):
        backend.save(USERS, {"a": {}}, [])


def test_long_device_ids_round_trip(backend):
    device_id = "d" * 300
    state = StateStore(backend)
    state.users.set(device_id, {"isPremium": True})
    state.flush(USERS)

    assert backend.load(USERS) == {device_id: {"isPremium": True}}
    assert isinstance(StateEntry.__table__.c.key.type, Text)
