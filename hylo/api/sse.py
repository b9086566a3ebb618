"""Server-Sent Event framing for routed requests."""

import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class EventType(str, Enum):
    STARTED = "started"
    STEP = "step"
    COMPLEXITY = "complexity"
    ROUTING = "routing"
    COMPLETED = "completed"
    METRICS = "metrics"
    ERROR = "error"


TERMINAL_EVENTS = (EventType.METRICS, EventType.ERROR)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class SSEEvent:
    type: EventType
    request_id: str
    data: Dict[str, Any]
    timestamp: int = field(default_factory=now_ms)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "requestId": self.request_id,
            "data": self.data,
            "timestamp": self.timestamp,
        }

    def encode(self) -> str:
        """Frame as ``data: <json>`` followed by a blank line."""
        return f"data: {json.dumps(self.to_dict(), default=str)}\n\n"


def parse_frame(frame: str) -> Optional[Dict[str, Any]]:
    """Decode one ``data:`` frame; returns None for comments and blank frames."""
    payload = "".join(
        line[len("data:"):].lstrip()
        for line in frame.strip().splitlines()
        if line.startswith("data:")
    )
    return json.loads(payload) if payload else None
