"""
Transaction runner for ledger mutations.

Every read-modify-write on dues, payments and room counters goes through
run_in_transaction: the work function runs, the session commits, and any failure
rolls the whole unit back. Lock timeouts and deadlocks (OperationalError) are
retried LOCK_RETRY_ATTEMPTS times before surfacing as PersistenceError.

The rollback expires every instance in the session, so work must load (or build)
the rows it touches itself and read only plain values captured from outside.
"""

import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ConflictError, PersistenceError, ServiceError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_in_transaction(
    db: AsyncSession,
    work: Callable[[], Awaitable[T]],
    *,
    operation: str,
    retries: Optional[int] = None,
) -> T:
    attempts = (settings.lock_retry_attempts if retries is None else retries) + 1
    for attempt in range(1, attempts + 1):
        try:
            result = await work()
            await db.commit()
            return result
        except ServiceError:
            await db.rollback()
            raise
        except IntegrityError as e:
            await db.rollback()
            raise ConflictError(f"Conflicting write during {operation}") from e
        except OperationalError as e:
            await db.rollback()
            if attempt < attempts:
                logger.warning(
                    "Transient lock failure during %s (attempt %d/%d), retrying",
                    operation, attempt, attempts,
                )
                continue
            logger.error("Giving up on %s after %d attempt(s): %s", operation, attempts, e)
            raise PersistenceError(f"Failed to complete {operation}") from e
        except DBAPIError as e:
            await db.rollback()
            logger.exception("Database error during %s", operation)
            raise PersistenceError(f"Failed to complete {operation}") from e
    raise PersistenceError(f"Failed to complete {operation}")
