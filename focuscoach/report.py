from __future__ import annotations

from datetime import datetime, tzinfo
from pathlib import Path
from typing import List, Optional, Sequence

from .models import SessionRecord
from .utils import ensure_directory, split_data_url, timestamp_slug


def focus_trend(history: Sequence[SessionRecord], count: int = 7) -> List[float]:
    """Focus percentages of the last *count* sessions, oldest first."""
    return [record.focus_percentage for record in reversed(list(history)[:count])]


def average_focus(history: Sequence[SessionRecord]) -> float:
    if not history:
        return 0.0
    return sum(record.focus_percentage for record in history) / len(history)


def _display_date(record: SessionRecord) -> str:
    try:
        return datetime.fromisoformat(record.date).strftime("%Y/%m/%d %H:%M")
    except ValueError:
        return record.date


def render_session_markdown(record: SessionRecord) -> str:
    lines = [f"# Focus session {_display_date(record)}", ""]
    lines.append(f"- Duration: **{record.duration_minutes} min**")
    lines.append(f"- Focused: **{record.focus_percentage:.0f}%**")
    lines.append(f"- Highlights: {len(record.highlight_frames)}")
    lines.append("\n## Summary\n")
    lines.append(record.summary)
    lines.append("\n## Pro Tip\n")
    lines.append(record.tip)
    return "\n".join(lines)


def render_history_markdown(history: Sequence[SessionRecord]) -> str:
    lines = ["# Focus session history", ""]
    lines.append(f"- Sessions: {len(history)}")
    lines.append(f"- Average focus: **{average_focus(history):.1f}%**")

    if history:
        last = history[0]
        lines.append("\n## Last session\n")
        lines.append(f"- {_display_date(last)}: {last.focus_percentage:.0f}% focused for {last.duration_minutes} min")

    trend = focus_trend(history)
    lines.append("\n## Focus trend\n")
    if len(trend) < 2:
        lines.append("Complete at least two sessions to see your progress.")
    else:
        lines.append(" -> ".join(f"{value:.0f}%" for value in trend))

    lines.append("\n## Sessions\n")
    lines.append("| Date | Duration (min) | Focused | Summary |")
    lines.append("| --- | ---: | ---: | --- |")
    for record in history:
        summary = record.summary.replace("|", "/").replace("\n", " ")
        lines.append(f"| {_display_date(record)} | {record.duration_minutes} | {record.focus_percentage:.0f}% | {summary} |")
    if not history:
        lines.append("| (no sessions) | 0 | 0% | - |")

    return "\n".join(lines)


def session_slug(record: SessionRecord, tz: Optional[tzinfo] = None) -> str:
    """Filename slug for a session, taken from its start time (the record id)."""
    return timestamp_slug(datetime.fromtimestamp(record.id / 1000.0, tz=tz))


def export_highlights(record: SessionRecord, directory: Path, tz: Optional[tzinfo] = None) -> List[Path]:
    folder = ensure_directory(directory)
    slug = session_slug(record, tz)
    written: List[Path] = []
    for index, frame in enumerate(record.highlight_frames, start=1):
        mime_type, raw = split_data_url(frame)
        suffix = ".png" if mime_type == "image/png" else ".jpg"
        path = folder / f"highlight-{slug}-{index}{suffix}"
        path.write_bytes(raw)
        written.append(path)
    return written
