from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path


class EventType(Enum):
    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"
    UNKNOWN = "unknown"


DEFAULT_EVENT_TYPES = frozenset({
    EventType.CREATED,
    EventType.MODIFIED,
    EventType.DELETED,
    EventType.RENAMED,
})


@dataclass(frozen=True)
class ChangeEvent:
    path: Path
    kind: EventType = EventType.UNKNOWN
    timestamp: datetime = field(default_factory=datetime.now)

    def __str__(self):
        return f"{self.kind.value}: {self.path}"
