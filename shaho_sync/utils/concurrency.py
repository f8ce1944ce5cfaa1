"""
Concurrency helpers for sync side effects.

- run_bounded: run independent units through a fixed-size worker pool,
  capturing each unit's failure instead of cancelling its siblings.
- retry_transaction: re-run a transactional unit when the database reports
  transient contention (lock timeout, serialization failure, deadlock, or a
  concurrent first insert tripping a unique constraint).
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Iterable, List, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

# serialization_failure, deadlock_detected, lock_not_available
TRANSIENT_SQLSTATES = frozenset({"40001", "40P01", "55P03"})


@dataclass
class UnitOutcome(Generic[T, R]):
    """Result of one unit of work: either a value or the captured error."""
    unit: T
    result: Optional[R] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def run_bounded(
    units: Iterable[T],
    worker: Callable[[T], Awaitable[R]],
    max_concurrency: int,
) -> List[UnitOutcome[T, R]]:
    """
    Run worker(unit) for every unit with at most max_concurrency in flight.

    Outcomes are returned in input order. Exceptions are captured per unit;
    cancellation still propagates.
    """
    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def run_one(unit: T) -> UnitOutcome[T, R]:
        async with semaphore:
            try:
                return UnitOutcome(unit=unit, result=await worker(unit))
            except Exception as e:
                return UnitOutcome(unit=unit, error=e)

    return list(await asyncio.gather(*(run_one(unit) for unit in units)))


def is_transient(error: DBAPIError) -> bool:
    """
    Whether a failed attempt is worth repeating.

    Lock and constraint races surface as OperationalError or IntegrityError.
    Drivers that report contention as a plain DBAPIError are recognised by
    SQLSTATE. Everything else (a value too long for its column, a bad
    statement) fails the same way on every attempt.
    """
    if isinstance(error, (OperationalError, IntegrityError)):
        return True
    code = getattr(error.orig, "sqlstate", None) or getattr(error.orig, "pgcode", None)
    return code in TRANSIENT_SQLSTATES


async def retry_transaction(
    operation: Callable[[], Awaitable[R]],
    *,
    retries: int,
    base_delay: float,
    description: str = "transaction",
) -> R:
    """
    Await operation(), retrying on transient database errors.

    operation must open and commit its own transaction so that each attempt
    starts from fresh reads. Delay doubles after each failed attempt.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except DBAPIError as e:
            if not is_transient(e) or attempt >= retries:
                raise
            delay = base_delay * (2 ** attempt)
            attempt += 1
            logger.warning(
                f"Retrying {description} after {type(e).__name__} "
                f"(attempt {attempt}/{retries}, delay {delay:.3f}s)"
            )
            await asyncio.sleep(delay)
