from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from ..core.enums import EventKind


@dataclass(frozen=True)
class ClassroomEvent:
    classroom_id: int
    kind: EventKind
    payload: dict[str, Any] = field(default_factory=dict)
    emitted_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "classroom_id": self.classroom_id,
            "kind": self.kind.value,
            "payload": self.payload,
            "emitted_at": self.emitted_at.isoformat(),
        }


class EventPublisher(Protocol):
    """Fire-and-forget notification of classroom subscribers."""

    def publish(self, classroom_id: int, kind: EventKind, payload: dict[str, Any]) -> None:
        raise NotImplementedError
