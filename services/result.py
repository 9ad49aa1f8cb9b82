"""
Result type for consistent error handling across services.

Lifecycle operations report rule violations (queue full, bad password,
invalid transition...) as failed Results carrying an error code from
services.error_codes, instead of raising into the caller.

Usage:
    result = lifecycle.join_queue(game_id, player_id)
    if result:
        view = result.value
    elif result.is_error(error_codes.QUEUE_FULL):
        ...
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of a service operation.

    Attributes:
        success: Whether the operation succeeded
        value: The return value if successful (None if failed or void operation)
        error: Human-readable message if failed
        error_code: Machine-readable code from services.error_codes if failed
    """

    success: bool
    value: T | None = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def ok(cls, value: T | None = None) -> "Result[T]":
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: str, code: str | None = None) -> "Result[T]":
        return cls(success=False, error=error, error_code=code)

    def __bool__(self) -> bool:
        return self.success

    def is_error(self, code: str) -> bool:
        """True if this is a failure with the given error code."""
        return not self.success and self.error_code == code

    def unwrap(self) -> T:
        """
        Get the value, raising ValueError if the result is a failure.

        Raises:
            ValueError: If the result is a failure
        """
        if not self.success:
            raise ValueError(f"Cannot unwrap failed result ({self.error_code}): {self.error}")
        return self.value  # type: ignore

    def unwrap_or(self, default: T) -> T:
        return self.value if self.success else default  # type: ignore

    def map(self, fn: Callable[[T], "Result[U]"]) -> "Result[U]":
        """Apply fn to the value of a success; pass failures through unchanged."""
        if not self.success:
            return self  # type: ignore
        return fn(self.value)  # type: ignore
