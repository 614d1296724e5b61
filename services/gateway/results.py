"""
Gateway Result Type

Every remote call returns an ApiResult instead of raising.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class ApiResult(Generic[T]):
    """Tagged success/failure of a remote call"""
    success: bool
    data: T | None = None
    error_message: str = ""
    status_code: int | None = None

    @classmethod
    def ok(cls, data: T, status_code: int = 200) -> "ApiResult[T]":
        return cls(success=True, data=data, status_code=status_code)

    @classmethod
    def fail(cls, message: str, status_code: int | None = None) -> "ApiResult[T]":
        """
        Failure result.

        status_code is None when no HTTP response was received
        (network error, undecodable body).
        """
        return cls(success=False, error_message=message, status_code=status_code)
