import threading

import pytest
from sqlalchemy.sql.dml import Update

from laundrypos.errors import PersistenceError, ValidationError
from laundrypos.extensions import db
from laundrypos.models import SequenceCounter
from laundrypos.services import sequence_service
from laundrypos.services.retry import RetryPolicy, RetryableConflict
from laundrypos.services.sequence_service import (
    DatabaseCounterStore,
    InMemoryCounterStore,
    format_sequential_id,
    generate_sequential_id,
    next_id,
)

FAST = RetryPolicy(attempts=3, base_delay=0)


def test_format_pads_and_never_truncates():
    assert format_sequential_id("TRX", 123, 6) == "TRX000123"
    assert format_sequential_id("C", 1234567, 5) == "C1234567"


def test_continues_from_persisted_counter(db_session):
    db_session.add(SequenceCounter(prefix="C", counter_value=41))
    db_session.commit()

    store = DatabaseCounterStore(policy=FAST)
    assert generate_sequential_id("C", 5, store=store) == "C00042"
    assert db_session.get(SequenceCounter, "C").counter_value == 42


def test_first_id_for_new_prefix_is_one(db_session):
    store = DatabaseCounterStore(policy=FAST)
    assert generate_sequential_id("RI", 6, store=store) == "RI000001"
    assert generate_sequential_id("RI", 6, store=store) == "RI000002"


def test_prefixes_are_independent(db_session):
    assert next_id("order") == "TRX000001"
    assert next_id("customer") == "C00001"
    assert next_id("order") == "TRX000002"
    assert next_id("return") == "R00001"
    assert next_id("order_item") == "ITM000001"


def test_lost_compare_and_set_is_retried(db_session, monkeypatch):
    db_session.add(SequenceCounter(prefix="C", counter_value=41))
    db_session.commit()

    session_cls = type(db.session)
    real_execute = session_cls.execute
    cas_attempts = []

    def racing_execute(self, statement, *args, **kwargs):
        if isinstance(statement, Update) and not cas_attempts:
            # Another writer advances the counter between our read and our write
            real_execute(
                self,
                SequenceCounter.__table__.update()
                .where(SequenceCounter.prefix == "C")
                .values(counter_value=SequenceCounter.counter_value + 1),
            )
        if isinstance(statement, Update):
            cas_attempts.append(statement)
        return real_execute(self, statement, *args, **kwargs)

    monkeypatch.setattr(session_cls, "execute", racing_execute)
    store = DatabaseCounterStore(policy=FAST)

    new_id = generate_sequential_id("C", 5, store=store)

    assert len(cas_attempts) == 2
    assert new_id == "C00042"
    monkeypatch.undo()
    assert db_session.get(SequenceCounter, "C").counter_value == 42


def test_exhausted_retries_surface_persistence_error(db_session, monkeypatch):
    def always_conflict(self, prefix):
        raise RetryableConflict("busy")

    monkeypatch.setattr(DatabaseCounterStore, "_increment_once", always_conflict)
    store = DatabaseCounterStore(policy=RetryPolicy(attempts=2, base_delay=0))

    with pytest.raises(PersistenceError) as excinfo:
        generate_sequential_id("TRX", 6, store=store)

    assert excinfo.value.kind == "sequence_unavailable"
    assert excinfo.value.retryable is True
    assert db_session.get(SequenceCounter, "TRX") is None


def test_rejects_bad_arguments():
    store = InMemoryCounterStore()
    with pytest.raises(ValidationError):
        generate_sequential_id("", 5, store=store)
    with pytest.raises(ValidationError):
        generate_sequential_id("C", 0, store=store)
    assert store.get("C") == 0


def test_memory_store_is_unique_under_threads():
    store = InMemoryCounterStore()
    issued = []
    lock = threading.Lock()

    def worker():
        for _ in range(200):
            value = generate_sequential_id("T", 6, store=store)
            with lock:
                issued.append(value)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(issued) == len(set(issued)) == 1600
    assert store.get("T") == 1600


def test_ids_are_strictly_increasing(db_session):
    numbers = [int(next_id("customer")[1:]) for _ in range(5)]
    assert numbers == sorted(numbers)
    assert len(set(numbers)) == 5


def test_set_counter_only_moves_forward(db_session):
    sequence_service.set_counter("C", 41)
    assert next_id("customer") == "C00042"
    with pytest.raises(ValidationError):
        sequence_service.set_counter("C", 10)
    assert sequence_service.list_counters() == [{"prefix": "C", "counter_value": 42}]
