"""
Per-class booking guard.

Admission and promotion must check capacity and write the booking as one
atomic unit. Two layers provide that:

* an ``asyncio.Lock`` per class id serialises requests handled by this
  process;
* the caller locks the class row with ``SELECT ... FOR UPDATE`` inside the
  same transaction, which serialises requests across processes on
  PostgreSQL. Engines without row locks (SQLite) only get the first layer.

Anything the two layers miss is caught by the partial unique indexes on
``bookings`` and surfaces as ``BookingConflictError``, which the services
retry with fresh state.
"""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
)

from .config import BOOKING_CONFLICT_RETRIES
from .database import TransactionManager
from .exceptions import BookingConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_class_locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = (
    weakref.WeakValueDictionary()
)


def _get_class_lock(class_id: int) -> asyncio.Lock:
    lock = _class_locks.get(class_id)
    if lock is None:
        lock = asyncio.Lock()
        _class_locks[class_id] = lock
    return lock


@asynccontextmanager
async def class_booking_guard(class_id: int) -> AsyncIterator[None]:
    """Hold the in-process booking lock for a class"""
    lock = _get_class_lock(class_id)
    if lock.locked():
        logger.debug(
            f"Waiting for booking lock on class {class_id}",
            extra={"class_id": class_id},
        )
    async with lock:
        yield


async def retry_on_conflict(
    operation: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
) -> T:
    """
    Run a booking transaction, repeating it on BookingConflictError.

    Each attempt starts from scratch and re-reads the current state, so the
    same inputs may legitimately end in a different outcome (for example a
    waitlist entry instead of a confirmed spot).
    """
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(1 + BOOKING_CONFLICT_RETRIES),
        retry=retry_if_exception_type(BookingConflictError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    ):
        with attempt:
            return await operation(*args, **kwargs)


@asynccontextmanager
async def booking_transaction(
    session: AsyncSession, class_id: int
) -> AsyncIterator[AsyncSession]:
    """
    Guarded all-or-nothing transaction for booking changes on one class.

    Commit happens before the lock is released. Unique index violations and
    serialisation failures are reported as BookingConflictError.
    """
    async with class_booking_guard(class_id):
        try:
            async with TransactionManager(session):
                yield session
        except (IntegrityError, OperationalError) as e:
            logger.warning(
                f"Booking conflict on class {class_id}: {type(e).__name__}",
                extra={"class_id": class_id, "exception_type": type(e).__name__},
            )
            raise BookingConflictError(class_id, type(e).__name__) from e
