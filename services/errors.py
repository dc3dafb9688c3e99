"""Service-layer error taxonomy and the storage-call boundary."""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

INVALID_LINK_MESSAGE = "This link is invalid or expired."


class ServiceError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    code = "service_error"
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotAuthenticatedError(ServiceError):
    status_code = 401
    code = "not_authenticated"


class ValidationFailedError(ServiceError):
    status_code = 422
    code = "validation_failed"


class NotFoundError(ServiceError):
    status_code = 404
    code = "not_found"


class StorageUnavailableError(ServiceError):
    """Network/backend failure; the effect of the call is unknown."""

    status_code = 503
    code = "storage_unavailable"
    retryable = True


def storage_operation(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """Bound a service coroutine by the storage timeout and translate backend failures."""

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return await asyncio.wait_for(
                func(*args, **kwargs),
                timeout=settings.DB_OPERATION_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError as exc:
            logger.warning("Storage call %s timed out after %ss", func.__name__, settings.DB_OPERATION_TIMEOUT_SECONDS)
            raise StorageUnavailableError("The request timed out. Please try again.") from exc
        except (SQLAlchemyError, OSError) as exc:
            # Drivers surface refused or reset connections as bare OSError.
            logger.warning("Storage call %s failed: %s", func.__name__, exc)
            raise StorageUnavailableError("The storage backend is unavailable. Please try again.") from exc

    return wrapper
