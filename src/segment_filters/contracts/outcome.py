from __future__ import annotations
"""Result envelopes and message types."""

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class Issue(BaseModel):
    """A problem (error or warning) found in a filter."""

    code: str = Field(..., description="Machine-readable error/warning code")
    message: str = Field(..., description="Human-readable message")
    context: dict[str, Any] = Field(
        default_factory=dict, description="Node id and other details"
    )


class ValidationResult(BaseModel):
    """Outcome of validating a filter in either wire format."""

    is_valid: bool
    issues: list[Issue] = Field(default_factory=list)

    @property
    def errors(self) -> list[str]:
        return [i.message for i in self.issues]

    @classmethod
    def from_issues(cls, issues: list[Issue]) -> "ValidationResult":
        return cls(is_valid=not issues, issues=issues)


class Outcome(BaseModel, Generic[T]):
    """Standard envelope for operations that may be refused."""

    ok: bool = Field(..., description="Whether the operation succeeded")
    data: Optional[T] = Field(default=None, description="The result data (if ok)")
    errors: list[Issue] = Field(default_factory=list)
    warnings: list[Issue] = Field(default_factory=list)

    @classmethod
    def success(
        cls,
        data: T,
        warnings: Optional[list[Issue]] = None,
    ) -> "Outcome[T]":
        return cls(ok=True, data=data, warnings=warnings or [])

    @classmethod
    def failure(
        cls,
        errors: list[Issue],
        warnings: Optional[list[Issue]] = None,
    ) -> "Outcome[T]":
        return cls(ok=False, data=None, errors=errors, warnings=warnings or [])


def err(code: str, message: str, **context: Any) -> Issue:
    """Helper to create an error issue."""
    return Issue(code=code, message=message, context=context)


def warn(code: str, message: str, **context: Any) -> Issue:
    """Helper to create a warning issue."""
    return Issue(code=code, message=message, context=context)
