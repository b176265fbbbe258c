import json

import pytest

from reprint.domain.logs import LogStore
from reprint.domain.models import LogLevel

from conftest import FixedRandom


@pytest.fixture
def store(clock) -> LogStore:
    return LogStore(["r1", "r2", "r3"], rng=FixedRandom(choice_seq="X7K2QPZZZZZZ"), clock=clock)


def test_seed_populates_faults_in_order(store: LogStore, clock) -> None:
    store.seed({"r1": ["sensor drift", "jam detected", "over-temp"]})
    entries = store.entries("r1")
    assert [e.id for e in entries] == ["e1", "e2", "e3"]
    assert [clock.now - e.timestamp for e in entries] == [300, 180, 60]
    assert all(e.level == LogLevel.ERROR for e in entries)
    assert store.entries("r2") == []


def test_error_counts_aggregate_across_devices(store: LogStore) -> None:
    store.append("r1", LogLevel.ERROR, "x")
    store.append("r2", LogLevel.INFO, "hello")
    assert store.error_count("r1") == 1
    assert store.error_count("r2") == 0
    assert store.error_count() == 1
    assert store.error_count() == sum(store.error_counts().values())
    assert store.has_error("r1")
    assert not store.has_error("r2")
    assert not store.has_error(None)


def test_diagnose_resolves_in_place(store: LogStore) -> None:
    store.seed({"r1": ["a", "b", "c"]})
    store.append("r1", LogLevel.INFO, "note")
    before = store.entries("r1")

    assert store.diagnose("r1") == 3
    after = store.entries("r1")
    assert store.error_count("r1") == 0
    assert [e.level for e in after].count(LogLevel.RESOLVED) == 3
    assert [e.id for e in after] == [e.id for e in before]
    assert [e.timestamp for e in after] == [e.timestamp for e in before]
    assert after[0].message == "Resolved - a"
    assert after[3].message == "note"
    assert after[3].level == LogLevel.INFO

    # second call is a no-op
    assert store.diagnose("r1") == 0
    assert store.entries("r1") == after


def test_create_ticket_appends_info_entry(store: LogStore) -> None:
    entry = store.create_ticket("r2")
    assert entry.id == "t-X7K2QP"
    assert entry.level == LogLevel.INFO
    assert entry.message == "Help ticket X7K2QP created."
    assert store.entries("r2")[-1].id == "t-X7K2QP"
    assert store.error_count("r2") == 0


def test_export_preserves_order_and_fields(store: LogStore) -> None:
    store.append("r3", LogLevel.ERROR, "first")
    store.append("r3", LogLevel.INFO, "second")
    before = store.entries("r3")

    data = json.loads(store.export("r3"))
    assert [d["message"] for d in data] == ["first", "second"]
    assert set(data[0]) == {"id", "timestamp", "level", "message"}
    assert data[0]["level"] == "error"
    assert data[0]["timestamp"].endswith("+00:00")
    assert store.entries("r3") == before
    assert LogStore.export_filename("r3") == "r3-logs.json"


def test_unknown_device_raises(store: LogStore) -> None:
    with pytest.raises(KeyError):
        store.append("nope", LogLevel.INFO, "x")
    with pytest.raises(KeyError):
        store.error_count("nope")


def test_append_refuses_resolved_entries(store: LogStore) -> None:
    with pytest.raises(ValueError):
        store.append("r2", LogLevel.RESOLVED, "never an error")
    assert store.entries("r2") == []


def test_ticket_ids_are_unique_per_device(clock) -> None:
    store = LogStore(["r1"], rng=FixedRandom(choice_seq="AAAAAAAAAAAABBBBBB"), clock=clock)
    first = store.create_ticket("r1")
    second = store.create_ticket("r1")
    assert first.id == "t-AAAAAA"
    assert second.id == "t-BBBBBB"
    assert second.message == "Help ticket BBBBBB created."
