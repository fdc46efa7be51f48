"""Tagged outcomes returned by every analytics engine.

Absence of data is a normal state, so it is modelled as a value rather than
an exception. ``Failure`` is produced by the calling layer when the storage
collaborator cannot supply rows; engines themselves never return it.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar


T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    data: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class InsufficientData:
    reason: str
    # empty-shaped payload the frontend still expects alongside the message
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return False


@dataclass(frozen=True)
class Failure:
    cause: str

    @property
    def ok(self) -> bool:
        return False


EngineResult = Ok[T] | InsufficientData | Failure
