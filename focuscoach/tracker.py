from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from .models import AttentivenessState, LogEntry


@dataclass(frozen=True)
class Transition:
    previous: AttentivenessState
    current: AttentivenessState
    transitioned: bool
    negative: bool


def advance(previous: AttentivenessState, new: AttentivenessState) -> Transition:
    """Return the next state and whether feedback-worthy edges were crossed.

    Only crossing into DISTRACTED/AWAY from a different state counts as a
    negative transition; repeating the same negative state does not.
    """
    transitioned = new != previous
    return Transition(
        previous=previous,
        current=new,
        transitioned=transitioned,
        negative=transitioned and new.is_negative,
    )


class StateTracker:
    """Current attentiveness state plus the append-only log of one session."""

    def __init__(self) -> None:
        self._current = AttentivenessState.IDLE
        self._entries: List[LogEntry] = []

    @property
    def current(self) -> AttentivenessState:
        return self._current

    @property
    def entries(self) -> List[LogEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def reset(self, status: AttentivenessState = AttentivenessState.IDLE) -> None:
        self._entries.clear()
        self._current = status

    def set_status(self, status: AttentivenessState) -> None:
        self._current = status

    def record(self, status: AttentivenessState, timestamp: datetime, sample: Optional[str] = None) -> Transition:
        if self._entries and timestamp < self._entries[-1].timestamp:
            raise ValueError(
                f"Log entry at {timestamp.isoformat()} is older than {self._entries[-1].timestamp.isoformat()}"
            )

        transition = advance(self._current, status)
        self._current = transition.current
        # Frames are only kept for focused samples; they feed highlight selection.
        kept = sample if status == AttentivenessState.FOCUSED else None
        self._entries.append(LogEntry(timestamp=timestamp, status=status, sample=kept))
        return transition

    def drain(self) -> List[LogEntry]:
        entries = self._entries
        self._entries = []
        return entries
