"""Tagged results returned by jobs and location lookups."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, Enum):
    UNSUPPORTED = "unsupported"
    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    REMOTE_FETCH_FAILURE = "remote_fetch_failure"
    REMOTE_WRITE_FAILURE = "remote_write_failure"
    CONFIG = "config"


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str

    @property
    def ok(self) -> bool:
        return False

    @classmethod
    def from_error(cls, exc) -> "Failure":
        # Any ListingGeoError carries its own kind.
        return cls(kind=exc.kind, message=str(exc))


Result = Union[Success[T], Failure]
