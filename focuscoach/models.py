from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional


class AttentivenessState(str, Enum):
    IDLE = "IDLE"
    ANALYZING = "ANALYZING"
    FOCUSED = "FOCUSED"
    DISTRACTED = "DISTRACTED"
    AWAY = "AWAY"

    @property
    def is_negative(self) -> bool:
        return self in (AttentivenessState.DISTRACTED, AttentivenessState.AWAY)


class SessionPhase(str, Enum):
    INACTIVE = "INACTIVE"
    STARTING = "STARTING"
    ACTIVE = "ACTIVE"
    STOPPING = "STOPPING"


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    status: AttentivenessState
    sample: Optional[str] = None


@dataclass(frozen=True)
class SessionFacts:
    duration_minutes: int
    focus_percentage: float
    distraction_times: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class SessionSummary:
    summary: str
    tip: str


@dataclass(frozen=True)
class SessionRecord:
    id: int
    date: str
    duration_minutes: int
    focus_percentage: float
    summary: str
    tip: str
    highlight_frames: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "duration_minutes": self.duration_minutes,
            "focus_percentage": self.focus_percentage,
            "summary": self.summary,
            "tip": self.tip,
            "highlight_frames": list(self.highlight_frames),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionRecord":
        frames = data.get("highlight_frames") or []
        if not isinstance(frames, list) or not all(isinstance(f, str) for f in frames):
            raise TypeError("highlight_frames must be a list of strings")
        summary = data["summary"]
        tip = data["tip"]
        if not isinstance(summary, str) or not isinstance(tip, str):
            raise TypeError("summary and tip must be strings")
        return cls(
            id=int(data["id"]),
            date=str(data["date"]),
            duration_minutes=int(data["duration_minutes"]),
            focus_percentage=float(data["focus_percentage"]),
            summary=summary,
            tip=tip,
            highlight_frames=tuple(frames),
        )
