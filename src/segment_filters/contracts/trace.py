"""Edit-level tracing for filter editing sessions."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass
class EditEvent:
    """Single event in an editing session."""
    timestamp: str
    event_type: str  # e.g., "add_condition", "undo", "refused"
    data: dict[str, Any]

    @classmethod
    def now(cls, event_type: str, **data) -> EditEvent:
        """Create event with current timestamp."""
        return cls(
            timestamp=datetime.now(timezone.utc).isoformat(),
            event_type=event_type,
            data=data,
        )


@dataclass
class EditLog:
    """Ordered record of what happened to a tree during one session."""
    session_id: str
    events: list[EditEvent] = field(default_factory=list)

    def add_event(self, event_type: str, **data) -> None:
        """Add event to the log."""
        self.events.append(EditEvent.now(event_type, **data))

    def event_types(self) -> list[str]:
        return [e.event_type for e in self.events]

    def to_dict(self) -> dict:
        """Convert to dictionary for logging."""
        return {
            "session_id": self.session_id,
            "events": [
                {
                    "timestamp": e.timestamp,
                    "type": e.event_type,
                    "data": e.data,
                }
                for e in self.events
            ],
        }
