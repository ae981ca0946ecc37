"""Success/failure result passed from a fetch step to its error policy."""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from .errors import ConfigLoaderError

T = TypeVar("T")


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Outcome of a fetch operation.

    Exactly one of ``value`` and ``error`` is meaningful. Callers branch on
    ``is_success`` and decide whether a failure is raised or replaced by an
    empty result.
    """

    value: Optional[T] = None
    error: Optional[ConfigLoaderError] = None

    @classmethod
    def success(cls, value: T) -> "FetchResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ConfigLoaderError) -> "FetchResult[T]":
        return cls(error=error)

    @property
    def is_success(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value
