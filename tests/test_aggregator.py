"""Tests for session aggregation: metrics, highlights and summary fallbacks."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone

import pytest

from focuscoach.aggregator import (
    FALLBACK_SUMMARY,
    LOW_DATA_SUMMARY,
    SessionAggregator,
    compute_facts,
    duration_minutes,
    focus_percentage,
    select_highlights,
)
from focuscoach.gemini_client import parse_summary_payload
from focuscoach.models import AttentivenessState as S
from focuscoach.models import LogEntry, SessionSummary

_LOG = logging.getLogger("test.aggregator")
_T0 = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


def _entry(seconds: float, status: S, sample: str | None = None) -> LogEntry:
    return LogEntry(timestamp=_T0 + timedelta(seconds=seconds), status=status, sample=sample)


class _Summarizer:
    def __init__(self, result=None, error=None):
        self.result = result or SessionSummary(summary="Nice work.", tip="Close your chat app.")
        self.error = error
        self.calls = []

    async def summarize(self, facts):
        self.calls.append(facts)
        if self.error is not None:
            raise self.error
        return self.result


class _MalformedSummarizer:
    async def summarize(self, facts):
        return parse_summary_payload('{"summary": "only half')


def _scenario_log() -> list[LogEntry]:
    return [
        _entry(0, S.FOCUSED, "f1"),
        _entry(80, S.FOCUSED, "f2"),
        _entry(160, S.DISTRACTED),
        _entry(240, S.FOCUSED, "f4"),
    ]


def test_scenario_metrics():
    entries = _scenario_log()
    summarizer = _Summarizer()
    aggregator = SessionAggregator(summarizer, _LOG)

    record = asyncio.run(aggregator.aggregate(entries, _T0, _T0 + timedelta(minutes=5)))

    assert record.focus_percentage == pytest.approx(75.0)
    assert record.duration_minutes == 4
    assert record.highlight_frames == ("f1", "f2", "f4")
    assert record.summary == "Nice work."
    assert record.tip == "Close your chat app."
    assert record.id == int(_T0.timestamp() * 1000)

    facts = summarizer.calls[0]
    assert facts.duration_minutes == 4
    assert facts.focus_percentage == pytest.approx(75.0)
    assert facts.distraction_times == ["09:02:40"]


def test_empty_log_takes_low_data_branch_without_calling_service():
    summarizer = _Summarizer()
    aggregator = SessionAggregator(summarizer, _LOG)

    record = asyncio.run(aggregator.aggregate([], _T0, _T0 + timedelta(minutes=3)))

    assert summarizer.calls == []
    assert record.summary == LOW_DATA_SUMMARY.summary
    assert record.tip == LOW_DATA_SUMMARY.tip
    assert record.focus_percentage == 0.0
    assert record.duration_minutes == 3
    assert record.highlight_frames == ()


def test_single_focused_entry_is_low_data():
    summarizer = _Summarizer()
    aggregator = SessionAggregator(summarizer, _LOG)
    entries = [_entry(0, S.FOCUSED, "a"), _entry(8, S.AWAY), _entry(16, S.AWAY)]

    summary = asyncio.run(aggregator.summarize(entries))

    assert summary == LOW_DATA_SUMMARY
    assert summarizer.calls == []


def test_malformed_summary_falls_back_but_keeps_metrics():
    aggregator = SessionAggregator(_MalformedSummarizer(), _LOG)

    record = asyncio.run(aggregator.aggregate(_scenario_log(), _T0, _T0 + timedelta(minutes=4)))

    assert record.summary == FALLBACK_SUMMARY.summary
    assert record.tip == FALLBACK_SUMMARY.tip
    assert record.focus_percentage == pytest.approx(75.0)


def test_summarizer_network_error_falls_back():
    aggregator = SessionAggregator(_Summarizer(error=ConnectionError("offline")), _LOG)

    summary = asyncio.run(aggregator.summarize(_scenario_log()))

    assert summary == FALLBACK_SUMMARY


def test_focus_percentage_is_share_of_focused_entries():
    entries = [_entry(i, S.FOCUSED if i % 3 == 0 else S.DISTRACTED) for i in range(9)]
    assert focus_percentage(entries) == pytest.approx(100.0 * 3 / 9)
    assert focus_percentage([]) == 0.0


def test_duration_rounds_half_up():
    entries = [_entry(0, S.FOCUSED), _entry(150, S.FOCUSED)]
    assert duration_minutes(entries) == 3


def test_highlights_are_last_five_focused_frames_in_order():
    entries = [_entry(i * 8, S.FOCUSED, f"f{i}") for i in range(7)]
    entries.insert(3, _entry(20, S.AWAY))
    entries.append(_entry(100, S.FOCUSED))  # focused but no frame kept

    assert select_highlights(entries) == ["f2", "f3", "f4", "f5", "f6"]
    assert select_highlights(entries, limit=0) == []


def test_compute_facts_lists_all_negative_times():
    entries = [_entry(0, S.FOCUSED), _entry(8, S.AWAY), _entry(16, S.DISTRACTED)]
    facts = compute_facts(entries)
    assert facts.distraction_times == ["09:00:08", "09:00:16"]
