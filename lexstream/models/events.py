from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    REVEAL = "reveal"
    SOURCES = "sources"
    FOLLOW_UPS = "follow_ups"
    TURN_COMPLETE = "turn_complete"
    QUOTA_EXHAUSTED = "quota_exhausted"
    ERROR = "error"


@dataclass
class SSEEvent:
    event: EventType
    data: dict[str, Any] = field(default_factory=dict)

    def to_sse(self) -> dict[str, str]:
        return {"event": self.event.value, "data": json.dumps(self.data)}
