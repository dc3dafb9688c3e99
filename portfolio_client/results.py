"""Result envelope returned by every client call."""

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class ClientError:
    message: str
    code: str = "unknown"
    retryable: bool = False
    status_code: Optional[int] = None


@dataclass
class ServiceResult(Generic[T]):
    """Either ``result`` or ``error`` is set; callers branch on ``ok``."""

    result: Optional[T] = None
    error: Optional[ClientError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, message: str, code: str, retryable: bool = False, status_code: Optional[int] = None) -> "ServiceResult[Any]":
        return cls(error=ClientError(message=message, code=code, retryable=retryable, status_code=status_code))
