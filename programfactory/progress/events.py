from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..contracts import utcnow


class EventType(str, Enum):
    CONNECTED = "connected"
    STEP_STARTED = "step-started"
    STEP_COMPLETED = "step-completed"
    ERROR = "error"
    COMPLETE = "complete"


class ProgressEvent(BaseModel):
    """Ephemeral notification about a running job. Never persisted."""

    type: EventType
    job_id: str
    step: Optional[str] = None
    message: Optional[str] = None
    data: Any = None
    timestamp: datetime = Field(default_factory=utcnow)

    @property
    def is_terminal(self) -> bool:
        """``complete``, or an ``error`` not tied to a step, ends the feed."""
        return self.type == EventType.COMPLETE or (
            self.type == EventType.ERROR and self.step is None
        )

    def to_sse(self) -> str:
        """Render the event-stream wire form."""
        payload = self.model_dump(mode="json", exclude_none=True)
        return f"data: {json.dumps(payload)}\n\n"
