"""Engine types (change events, observer contract, transition result)."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, TypeAlias

if TYPE_CHECKING:
    from seff.resources.base import Resource


class ChangeType(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    REMOVE = "remove"


@dataclass(frozen=True)
class ChangeEvent:
    """A resource-level mutation that has already succeeded in the cloud."""

    type: ChangeType
    resource: Resource

    def __str__(self) -> str:
        return f"{self.type.value} {self.resource.uid}"


# ``None`` is a checkpoint-only notification with no structural change.
ChangeObserver: TypeAlias = Callable[[ChangeEvent | None], Awaitable[None]]
ProgressCallback: TypeAlias = Callable[[ChangeEvent | None], None]


@dataclass
class TransitionResult:
    events: list[ChangeEvent] = field(default_factory=list)
    checkpoints: int = 0

    def summary(self) -> dict[str, int]:
        counts = {t.value: 0 for t in ChangeType}
        for e in self.events:
            counts[e.type.value] += 1
        return counts

    @property
    def changed(self) -> bool:
        return bool(self.events)
