"""Turn one session's log into a SessionRecord."""

from __future__ import annotations

import math
from datetime import datetime
from typing import List, Sequence

from .models import AttentivenessState, LogEntry, SessionFacts, SessionRecord, SessionSummary

LOW_DATA_SUMMARY = SessionSummary(
    summary="You just completed a session! Every effort counts. Let's try to build more focus in the next one.",
    tip="For the next session, try setting a clear, single goal before you start. It can make a huge difference!",
)

FALLBACK_SUMMARY = SessionSummary(
    summary="Great session! You showed some real dedication. Keep up the momentum!",
    tip="Consistency is key. Try to schedule your next focus session for the same time tomorrow.",
)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def focused_count(entries: Sequence[LogEntry]) -> int:
    return sum(1 for entry in entries if entry.status == AttentivenessState.FOCUSED)


def focus_percentage(entries: Sequence[LogEntry]) -> float:
    if not entries:
        return 0.0
    return 100.0 * focused_count(entries) / len(entries)


def duration_minutes(entries: Sequence[LogEntry]) -> int:
    if not entries:
        return 0
    span = (entries[-1].timestamp - entries[0].timestamp).total_seconds()
    return _round_half_up(span / 60.0)


def distraction_times(entries: Sequence[LogEntry]) -> List[str]:
    return [entry.timestamp.strftime("%H:%M:%S") for entry in entries if entry.status.is_negative]


def compute_facts(entries: Sequence[LogEntry]) -> SessionFacts:
    return SessionFacts(
        duration_minutes=duration_minutes(entries),
        focus_percentage=focus_percentage(entries),
        distraction_times=distraction_times(entries),
    )


def select_highlights(entries: Sequence[LogEntry], limit: int = 5) -> List[str]:
    """Last *limit* focused frames, oldest first."""
    if limit <= 0:
        return []
    frames = [entry.sample for entry in entries if entry.status == AttentivenessState.FOCUSED and entry.sample]
    return frames[-limit:]


class SessionAggregator:
    def __init__(self, summarizer, log, *, min_focused: int = 2, highlight_limit: int = 5):
        self._summarizer = summarizer
        self._logger = log
        self._min_focused = min_focused
        self._highlight_limit = highlight_limit

    async def summarize(self, entries: Sequence[LogEntry]) -> SessionSummary:
        if not entries or focused_count(entries) < self._min_focused:
            self._logger.info("Not enough focused samples (%s entries); using low-data summary", len(entries))
            return LOW_DATA_SUMMARY

        facts = compute_facts(entries)
        try:
            return await self._summarizer.summarize(facts)
        except Exception as exc:
            self._logger.warning("Session summarization failed; using fallback summary: %s", exc)
            return FALLBACK_SUMMARY

    async def aggregate(self, entries: Sequence[LogEntry], started_at: datetime, ended_at: datetime) -> SessionRecord:
        entries = list(entries)
        summary = await self.summarize(entries)

        if entries:
            minutes = duration_minutes(entries)
        else:
            minutes = _round_half_up((ended_at - started_at).total_seconds() / 60.0)

        record = SessionRecord(
            id=int(started_at.timestamp() * 1000),
            date=ended_at.isoformat(),
            duration_minutes=minutes,
            focus_percentage=focus_percentage(entries),
            summary=summary.summary,
            tip=summary.tip,
            highlight_frames=tuple(select_highlights(entries, self._highlight_limit)),
        )
        self._logger.info(
            "Session aggregated: %s entries, %s min, %.0f%% focused, %s highlights",
            len(entries),
            record.duration_minutes,
            record.focus_percentage,
            len(record.highlight_frames),
        )
        return record
