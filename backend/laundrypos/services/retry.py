# Overview: Retry policy for database operations; one implementation for every call site.

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryableConflict(Exception):
    """Raised by an operation that lost a race and may simply be run again."""


def is_transient_db_error(exc: BaseException) -> bool:
    """Deadlocks, lock timeouts, optimistic-lock conflicts and lost compare-and-set races."""
    return isinstance(exc, (OperationalError, StaleDataError, RetryableConflict))


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 3
    base_delay: float = 0.1
    multiplier: float = 2.0
    is_retryable: Callable[[BaseException], bool] = field(default=is_transient_db_error)

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt + 1`` (attempt is zero-based)."""
        return self.base_delay * (self.multiplier ** attempt)


DEFAULT_POLICY = RetryPolicy()


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(
    func: Callable[[], T],
    *,
    policy: RetryPolicy = DEFAULT_POLICY,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Execute ``func`` and retry it while ``policy.is_retryable`` accepts the error.

    The session is rolled back before each retry so ``func`` always starts
    from a clean transaction. Non-retryable errors and the last retryable one
    propagate unchanged.
    """
    for attempt in range(policy.attempts):
        try:
            return func()
        except Exception as exc:
            if not policy.is_retryable(exc):
                raise
            db.session.rollback()
            if attempt >= policy.attempts - 1:
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "Retrying after %s (attempt %d/%d, sleeping %.3fs)",
                type(exc).__name__, attempt + 1, policy.attempts, delay,
            )
            sleep(delay)
    raise RuntimeError("RetryPolicy.attempts must be >= 1")


def policy_from_config(config, *, prefix: str = "DB") -> RetryPolicy:
    """Build a policy from ``<prefix>_RETRY_ATTEMPTS`` / ``<prefix>_RETRY_BASE_DELAY``."""
    return RetryPolicy(
        attempts=int(config.get(f"{prefix}_RETRY_ATTEMPTS", DEFAULT_POLICY.attempts)),
        base_delay=float(config.get(f"{prefix}_RETRY_BASE_DELAY", DEFAULT_POLICY.base_delay)),
    )
