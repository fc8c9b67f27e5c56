"""
Success / failure result returned by every use case.

Use cases never raise to their callers: expected failures travel as a
DomainError inside a failed Result, and the web layer decides how to
render them.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable

from .errors import DomainError, InternalError


@dataclass(frozen=True)
class Result[T]:
    """
    Outcome of an operation.

    Type Parameters:
        T: The type of the value carried on success
    """
    is_success: bool
    value: T | None = None
    error: DomainError | None = None

    @classmethod
    def success(cls, value: T = None) -> "Result[T]":
        return cls(is_success=True, value=value)

    @classmethod
    def failure(cls, error: DomainError) -> "Result[T]":
        return cls(is_success=False, error=error)

    @property
    def is_failure(self) -> bool:
        return not self.is_success

    def unwrap(self) -> T:
        """Return the value or raise the carried error."""
        if self.is_success:
            return self.value
        raise self.error


async def safe_call[T](
    operation: Callable[[], Awaitable[T]],
    error_message: str,
) -> Result[T]:
    """
    Await an operation and capture any failure as a Result.

    DomainErrors pass through with their type intact; anything else is
    wrapped in an InternalError prefixed with error_message.
    """
    try:
        return Result.success(await operation())
    except DomainError as e:
        return Result.failure(e)
    except Exception as e:
        return Result.failure(InternalError(f"{error_message}: {e}"))
