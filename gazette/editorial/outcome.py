"""Typed success/failure value for batch calls.

A batch goes request -> extract -> map. Each step returns an Outcome, so the
stage code reads as a straight chain ending in `coalesce(fallback)` instead
of nested try/except blocks.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Generic, TypeVar

from gazette.services.generation import GenerationError

from .extraction import ExtractionError

T = TypeVar("T")
U = TypeVar("U")


class FailureKind(StrEnum):
    """Why a batch produced no usable output."""

    SERVICE = "service"  # request failed after retries
    MALFORMED = "malformed"  # response could not be extracted or mapped


@dataclass(frozen=True)
class Outcome(Generic[T]):
    value: T | None = None
    failure: FailureKind | None = None
    error: str = ""

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failed(cls, kind: FailureKind, error: str) -> "Outcome[T]":
        return cls(failure=kind, error=error)

    @property
    def ok(self) -> bool:
        return self.failure is None

    def then(self, fn: Callable[[T], U]) -> "Outcome[U]":
        """Apply fn to a success value. Extraction errors become MALFORMED."""
        if not self.ok:
            return Outcome(failure=self.failure, error=self.error)
        try:
            return Outcome.success(fn(self.value))
        except ExtractionError as e:
            return Outcome.failed(FailureKind.MALFORMED, str(e))
        except GenerationError as e:
            return Outcome.failed(FailureKind.SERVICE, str(e))

    def coalesce(self, fallback: Callable[[], T]) -> T:
        """The success value, or the fallback computed on demand."""
        if self.ok:
            return self.value
        return fallback()
