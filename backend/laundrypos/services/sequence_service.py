# Overview: Service-layer operations for human-readable sequential ids.

"""
Sequential ID generation ("TRX000123", "C00042", "R00007", ...).

A counter store hands out the next integer for a prefix; this module pads it
and glues the prefix on. Two stores share one interface:

- DatabaseCounterStore: one ``id_sequences`` row per prefix, advanced by
  read-increment-write guarded with compare-and-set. A lost race raises
  RetryableConflict and the whole read-increment-write is retried under the
  sequence RetryPolicy. When every attempt fails the caller gets a
  PersistenceError and must abandon the enclosing create operation.
- InMemoryCounterStore: per-process counters starting at 0. Not safe across
  restarts or multiple processes; only for harnesses without a database.

NOTE: DatabaseCounterStore commits the session. Allocate ids before adding
the rows that use them.
"""

from __future__ import annotations

import logging
import threading

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import PersistenceError, ValidationError
from ..extensions import db
from ..models import SequenceCounter
from .retry import RetryPolicy, RetryableConflict, policy_from_config, run_with_retry

logger = logging.getLogger(__name__)

EXTENSION_KEY = "laundrypos.sequence_store"

# kind -> (prefix, digit width)
ID_FORMATS = {
    "order": ("TRX", 6),
    "order_item": ("ITM", 6),
    "customer": ("C", 5),
    "return": ("R", 5),
    "return_item": ("RI", 6),
}


class CounterStore:
    """Persisted or in-process source of per-prefix monotonic integers."""

    name = "abstract"
    durable = False

    def get(self, prefix: str) -> int:
        raise NotImplementedError

    def increment(self, prefix: str) -> int:
        raise NotImplementedError

    def set(self, prefix: str, value: int) -> int:
        raise NotImplementedError

    def snapshot(self) -> dict[str, int]:
        raise NotImplementedError


def _refuse_rewind(prefix: str, current: int, value: int) -> None:
    if value < current:
        raise ValidationError(
            f"Sequence {prefix} is at {current}; refusing to move it back to {value}",
            kind="sequence_rewind",
        )


class InMemoryCounterStore(CounterStore):
    name = "memory"

    def __init__(self, initial: dict[str, int] | None = None):
        self._counters: dict[str, int] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, prefix: str) -> int:
        with self._lock:
            return self._counters.get(prefix, 0)

    def increment(self, prefix: str) -> int:
        with self._lock:
            value = self._counters.get(prefix, 0) + 1
            self._counters[prefix] = value
            return value

    def set(self, prefix: str, value: int) -> int:
        with self._lock:
            _refuse_rewind(prefix, self._counters.get(prefix, 0), value)
            self._counters[prefix] = value
            return value

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counters)


class DatabaseCounterStore(CounterStore):
    name = "database"
    durable = True

    def __init__(self, policy: RetryPolicy | None = None):
        self.policy = policy or RetryPolicy(attempts=5, base_delay=0.05)

    def get(self, prefix: str) -> int:
        value = (
            db.session.query(SequenceCounter.counter_value)
            .filter_by(prefix=prefix)
            .scalar()
        )
        return value or 0

    def _increment_once(self, prefix: str) -> int:
        current = (
            db.session.query(SequenceCounter.counter_value)
            .filter_by(prefix=prefix)
            .scalar()
        )

        if current is None:
            db.session.add(SequenceCounter(prefix=prefix, counter_value=1))
            try:
                db.session.commit()
            except IntegrityError:
                db.session.rollback()
                raise RetryableConflict(f"Sequence {prefix} was initialized concurrently")
            return 1

        new_value = current + 1
        result = db.session.execute(
            update(SequenceCounter)
            .where(
                SequenceCounter.prefix == prefix,
                SequenceCounter.counter_value == current,
            )
            .values(counter_value=new_value)
        )
        if result.rowcount != 1:
            db.session.rollback()
            raise RetryableConflict(f"Sequence {prefix} advanced concurrently from {current}")

        db.session.commit()
        return new_value

    def increment(self, prefix: str) -> int:
        try:
            return run_with_retry(lambda: self._increment_once(prefix), policy=self.policy)
        except (SQLAlchemyError, RetryableConflict) as exc:
            db.session.rollback()
            logger.error("Sequence allocation failed for prefix %s: %s", prefix, exc)
            raise PersistenceError(
                f"Could not allocate a new {prefix} id",
                kind="sequence_unavailable",
                retryable=True,
            ) from exc

    def set(self, prefix: str, value: int) -> int:
        """Operator override. Counters only move forward."""
        row = db.session.get(SequenceCounter, prefix)
        if row is None:
            row = SequenceCounter(prefix=prefix, counter_value=value)
            db.session.add(row)
        else:
            _refuse_rewind(prefix, row.counter_value, value)
            row.counter_value = value
        db.session.commit()
        return row.counter_value

    def snapshot(self) -> dict[str, int]:
        rows = db.session.query(SequenceCounter).order_by(SequenceCounter.prefix.asc()).all()
        return {row.prefix: row.counter_value for row in rows}


def init_sequence_store(app) -> CounterStore:
    """Attach the configured counter store to the app (called by create_app)."""
    kind = app.config.get("SEQUENCE_STORE", "database")
    if kind == "memory":
        app.logger.warning(
            "Using in-memory id sequences: ids restart after a process restart "
            "and collide across workers"
        )
        store: CounterStore = InMemoryCounterStore()
    elif kind == "database":
        store = DatabaseCounterStore(policy=policy_from_config(app.config, prefix="SEQUENCE"))
    else:
        raise ValueError(f"Unknown SEQUENCE_STORE: {kind}")
    app.extensions[EXTENSION_KEY] = store
    return store


def get_counter_store() -> CounterStore:
    store = current_app.extensions.get(EXTENSION_KEY)
    if store is None:
        store = init_sequence_store(current_app)
    return store


def format_sequential_id(prefix: str, number: int, digit_width: int) -> str:
    # Zero-pad to the width; longer numbers are never truncated
    return f"{prefix}{number:0{digit_width}d}"


def generate_sequential_id(prefix: str, digit_width: int = 6, store: CounterStore | None = None) -> str:
    """
    Allocate the next id for ``prefix``.

    Raises:
        ValidationError: blank prefix or non-positive width
        PersistenceError: the counter could not be advanced
    """
    if not prefix or not isinstance(prefix, str):
        raise ValidationError("prefix is required")
    if not isinstance(digit_width, int) or isinstance(digit_width, bool) or digit_width < 1:
        raise ValidationError("digit_width must be a positive integer")

    store = store or get_counter_store()
    number = store.increment(prefix)
    return format_sequential_id(prefix, number, digit_width)


def next_id(kind: str, store: CounterStore | None = None) -> str:
    """Allocate an id using the house format for ``kind`` (order, customer, return, ...)."""
    prefix, width = ID_FORMATS[kind]
    return generate_sequential_id(prefix, width, store=store)


def list_counters(store: CounterStore | None = None) -> list[dict]:
    counters = (store or get_counter_store()).snapshot()
    return [{"prefix": prefix, "counter_value": counters[prefix]} for prefix in sorted(counters)]


def set_counter(prefix: str, value, store: CounterStore | None = None) -> int:
    """Operator override used after importing legacy data; never rewinds."""
    if not prefix or not isinstance(prefix, str):
        raise ValidationError("prefix is required")
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValidationError("value must be a non-negative integer")
    store = store or get_counter_store()
    result = store.set(prefix, value)
    logger.warning("Sequence %s set to %s by operator", prefix, result)
    return result
