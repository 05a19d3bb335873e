"""
Async engine, session factory and the unit-of-work guard.

Sessions are created per request and passed explicitly into the services;
there is no module-level client the business logic reaches for.
"""

import asyncio
import functools
from typing import Any, AsyncGenerator, Awaitable, Callable, TypeVar

from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from studio_booking.core.config import get_settings
from studio_booking.core.exceptions import StorageUnavailable
from studio_booking.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

T = TypeVar("T")

# Errors a caller may retry with backoff. IntegrityError is not one of them:
# constraint violations are translated into domain errors by the services.
TRANSIENT_ERRORS = (OperationalError, InterfaceError, TimeoutError, asyncio.TimeoutError)


def engine_options(url: str) -> dict[str, Any]:
    if url.startswith("sqlite"):
        return {}
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_recycle": settings.DB_POOL_RECYCLE,
        "pool_pre_ping": True,
        "connect_args": {"command_timeout": settings.DB_COMMAND_TIMEOUT},
    }


engine = create_async_engine(settings.DATABASE_URL, echo=settings.DEBUG, **engine_options(settings.DATABASE_URL))
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, rolled back on error."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def _rollback_quietly(db: AsyncSession, operation: str) -> None:
    try:
        await db.rollback()
    except SQLAlchemyError as exc:
        logger.warning("rollback_failed", operation=operation, error=str(exc))


def unit_of_work(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """
    Wrap a service operation taking ``db`` as its first argument.

    Any failure rolls back everything the operation wrote, so no partial
    booking/credit/waitlist state survives. Transient storage errors and
    statement timeouts surface as StorageUnavailable.
    """

    @functools.wraps(func)
    async def wrapper(db: AsyncSession, *args: Any, **kwargs: Any) -> T:
        try:
            return await func(db, *args, **kwargs)
        except TRANSIENT_ERRORS as exc:
            await _rollback_quietly(db, func.__name__)
            logger.warning("storage_unavailable", operation=func.__name__, error=str(exc))
            raise StorageUnavailable(details={"operation": func.__name__}) from exc
        except Exception:
            await _rollback_quietly(db, func.__name__)
            raise

    return wrapper
