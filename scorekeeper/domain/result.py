from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

from .exceptions import ScorekeeperError

T = TypeVar("T")


class ErrorDetail(BaseModel):
    """Machine-readable failure description returned across the boundary."""

    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_exception(cls, error: ScorekeeperError) -> "ErrorDetail":
        return cls(code=error.code, message=str(error), details=error.to_details())


class OperationResult(BaseModel, Generic[T]):
    """Explicit success or failure of a core operation.

    Expected failures (validation, bad references, storage trouble) never
    escape as exceptions across the service boundary; they come back as a
    result with ``success=False`` and an :class:`ErrorDetail`.

    Examples:
        >>> result = await service.apply_delivery({"over": 4, "ball": 1, "runs": 1})
        >>> if result.success:
        ...     print(result.data.state.total_runs)
        ... else:
        ...     print(result.error.code, result.error.details)
    """

    success: bool
    data: T | None = None
    error: ErrorDetail | None = None

    @classmethod
    def ok(cls, data: T) -> "OperationResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: ScorekeeperError) -> "OperationResult[T]":
        return cls(success=False, error=ErrorDetail.from_exception(error))

    def unwrap(self) -> T:
        """Return the data of a successful result.

        Raises:
            RuntimeError: If the result is a failure.
        """
        if not self.success or self.error is not None:
            raise RuntimeError(f"unwrap() on failed result: {self.error}")
        return self.data  # type: ignore[return-value]
