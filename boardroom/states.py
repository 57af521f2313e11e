from __future__ import annotations

import dataclasses
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from .personas import PersonaType


class SchedulerState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


@dataclass
class ConversationState:
    current_speaker: Optional[PersonaType] = None
    conversation_round: int = 0
    topic_focus: str = ""
    is_active: bool = False
    pause_requested: bool = False
    # Seconds since the epoch; 0.0 until the first message.
    last_speak_time: float = 0.0

    def snapshot(self) -> "ConversationState":
        return dataclasses.replace(self)


def _new_message_id() -> str:
    return uuid.uuid4().hex


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Message:
    content: str
    persona: PersonaType
    id: str = field(default_factory=_new_message_id)
    timestamp: datetime = field(default_factory=_now)
    fact_checked: bool = False

    @classmethod
    def from_user(cls, content: str) -> "Message":
        return cls(content=content, persona=PersonaType.USER)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "persona": self.persona.value,
            "timestamp": self.timestamp.isoformat(),
            "fact_checked": self.fact_checked,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        return cls(
            id=str(data["id"]),
            content=data.get("content") or "",
            persona=PersonaType(data["persona"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            fact_checked=bool(data.get("fact_checked", False)),
        )
