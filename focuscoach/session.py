from __future__ import annotations

import asyncio
from datetime import datetime, tzinfo
from typing import Callable, List, Optional, Set

from .config import SessionSettings
from .models import AttentivenessState, LogEntry, SessionPhase, SessionRecord
from .tracker import StateTracker

ANALYSIS_FAILED_MESSAGE = "Focus analysis failed. Check your network or API key."
SUMMARY_FAILED_MESSAGE = "Unable to generate your session summary."


class AlreadyActiveError(RuntimeError):
    pass


class SessionAbortedError(RuntimeError):
    pass


class SessionController:
    """Owns one focus session at a time: timers, the attentiveness log and its wrap-up.

    Everything runs on one event loop. Each coroutine re-checks the session token
    after every await so a stopped or torn-down session never receives late
    results from a pass that was still waiting on the classifier.
    """

    def __init__(
        self,
        sampler,
        classifier,
        aggregator,
        history,
        feedback,
        settings: SessionSettings,
        log,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        timezone: Optional[tzinfo] = None,
    ):
        self._sampler = sampler
        self._classifier = classifier
        self._aggregator = aggregator
        self._history = history
        self._feedback = feedback
        self._settings = settings
        self._logger = log
        self._clock = clock or (lambda: datetime.now(tz=timezone))

        self._phase = SessionPhase.INACTIVE
        self._tracker = StateTracker()
        self._elapsed_seconds = 0.0
        self._started_at: Optional[datetime] = None
        self._token: Optional[object] = None
        self._timers: List[asyncio.Task] = []
        self._passes: Set[asyncio.Task] = set()
        self._analysis_in_flight = False
        self._closed = False
        self._finished: Optional[asyncio.Event] = None
        self._last_error: Optional[str] = None
        self._last_record: Optional[SessionRecord] = None

        self.on_status: Optional[Callable[[AttentivenessState], None]] = None
        self.on_tick: Optional[Callable[[float], None]] = None
        self.on_error: Optional[Callable[[str], None]] = None
        self.on_record: Optional[Callable[[SessionRecord], None]] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def is_active(self) -> bool:
        return self._phase == SessionPhase.ACTIVE

    @property
    def status(self) -> AttentivenessState:
        return self._tracker.current

    @property
    def elapsed_seconds(self) -> float:
        return self._elapsed_seconds

    @property
    def entries(self) -> List[LogEntry]:
        return self._tracker.entries

    @property
    def started_at(self) -> Optional[datetime]:
        return self._started_at

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def last_record(self) -> Optional[SessionRecord]:
        return self._last_record

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._closed:
            raise RuntimeError("Session controller has been closed")
        if self._phase != SessionPhase.INACTIVE:
            raise AlreadyActiveError(f"Cannot start a session while {self._phase.value}")

        self._phase = SessionPhase.STARTING
        self._tracker.reset()
        self._elapsed_seconds = 0.0
        self._last_error = None
        self._last_record = None
        self._analysis_in_flight = False
        self._started_at = self._clock()
        self._token = object()
        self._finished = asyncio.Event()

        self._phase = SessionPhase.ACTIVE
        self._set_status(AttentivenessState.ANALYZING)
        self._timers = [
            asyncio.create_task(self._run_every(self._settings.tick_seconds, self._tick)),
            asyncio.create_task(self._run_every(self._settings.analysis_interval_seconds, self._schedule_analysis)),
        ]
        self._logger.info(
            "Session started at %s (analysis every %ss)",
            self._started_at.isoformat(),
            self._settings.analysis_interval_seconds,
        )

        # First pass right away so feedback does not wait for a full interval.
        await self.run_analysis_pass()

    async def stop(self) -> Optional[SessionRecord]:
        if self._phase != SessionPhase.ACTIVE:
            return None

        self._phase = SessionPhase.STOPPING
        self._token = None
        self._cancel_timers()
        entries = self._tracker.drain()
        self._set_status(AttentivenessState.IDLE)
        started_at = self._started_at or self._clock()
        ended_at = self._clock()
        self._logger.info("Stopping session with %s log entries", len(entries))

        record: Optional[SessionRecord] = None
        try:
            record = await self._aggregator.aggregate(entries, started_at, ended_at)
            if self._closed:
                self._logger.info("Controller closed during wrap-up; dropping session record")
                return None
            await self._history.add(record)
        except Exception as exc:
            self._logger.exception("Session wrap-up failed: %s", exc)
            record = None
            if not self._closed:
                self._fail(SUMMARY_FAILED_MESSAGE)
        finally:
            self._phase = SessionPhase.INACTIVE
            self._analysis_in_flight = False
            if self._finished is not None:
                self._finished.set()

        if record is not None:
            self._last_record = record
            self._emit(self.on_record, record)
        return record

    async def wait_inactive(self) -> None:
        if self._finished is not None:
            await self._finished.wait()

    async def wait_finished(self) -> Optional[SessionRecord]:
        """Block until the current session ends by stop(), abort or aclose().

        Raises SessionAbortedError with the user-facing message when the session
        ended on an error instead of producing a record.
        """
        await self.wait_inactive()
        if self._last_error is not None:
            raise SessionAbortedError(self._last_error)
        return self._last_record

    async def aclose(self) -> None:
        """Tear down: cancel timers and in-flight work, ignore any late results."""
        if self._closed:
            return
        self._closed = True
        self._token = None
        self._cancel_timers()
        passes = list(self._passes)
        for task in passes:
            task.cancel()
        if passes:
            await asyncio.gather(*passes, return_exceptions=True)
        if self._feedback is not None:
            await self._feedback.aclose()
        if self._phase == SessionPhase.ACTIVE:
            self._tracker.reset()
            self._phase = SessionPhase.INACTIVE
        if self._finished is not None:
            self._finished.set()
        self._logger.info("Session controller closed")

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    async def run_analysis_pass(self) -> Optional[LogEntry]:
        token = self._token
        if not self._is_live(token):
            return None
        if self._analysis_in_flight:
            self._logger.debug("Previous analysis still in flight; skipping this tick")
            return None

        self._analysis_in_flight = True
        try:
            frame = await self._capture()
            if frame is None or not self._is_live(token):
                return None

            try:
                status = await self._classifier.classify(frame)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                if self._is_live(token):
                    self._logger.error("Analysis failed: %s", exc)
                    self._abort()
                else:
                    self._logger.debug("Ignoring analysis failure from a finished session: %s", exc)
                return None

            if not self._is_live(token):
                self._logger.debug("Discarding %s from a finished session", status.value)
                return None
            return self._apply(status, frame)
        finally:
            if token is self._token:
                self._analysis_in_flight = False

    async def _capture(self) -> Optional[str]:
        try:
            frame = await self._sampler.capture()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._logger.warning("Capture failed; skipping this tick: %s", exc)
            return None
        if frame is None:
            self._logger.debug("No sample this tick")
        return frame

    def _apply(self, status: AttentivenessState, frame: str) -> LogEntry:
        timestamp = self._clock()
        entries = self._tracker.entries
        if entries and timestamp < entries[-1].timestamp:
            timestamp = entries[-1].timestamp

        transition = self._tracker.record(status, timestamp, frame)
        entry = self._tracker.entries[-1]
        self._logger.info("Sample %s -> %s", len(self._tracker), status.value)

        if transition.transitioned:
            self._emit(self.on_status, status)
        if transition.negative and self._feedback is not None:
            self._feedback.dispatch()
        return entry

    def _abort(self) -> None:
        self._token = None
        self._cancel_timers()
        self._tracker.reset()
        self._phase = SessionPhase.INACTIVE
        self._analysis_in_flight = False
        self._emit(self.on_status, AttentivenessState.IDLE)
        self._fail(ANALYSIS_FAILED_MESSAGE)
        if self._finished is not None:
            self._finished.set()

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    async def _run_every(self, interval: float, action: Callable[[], None]) -> None:
        while True:
            await asyncio.sleep(interval)
            action()

    def _tick(self) -> None:
        if not self.is_active:
            return
        self._elapsed_seconds += self._settings.tick_seconds
        self._emit(self.on_tick, self._elapsed_seconds)

    def _schedule_analysis(self) -> None:
        if not self.is_active:
            return
        if self._analysis_in_flight:
            self._logger.debug("Previous analysis still in flight; skipping this tick")
            return
        task = asyncio.create_task(self.run_analysis_pass())
        self._passes.add(task)
        task.add_done_callback(self._passes.discard)

    def _cancel_timers(self) -> None:
        for timer in self._timers:
            timer.cancel()
        self._timers = []

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _is_live(self, token: Optional[object]) -> bool:
        return (
            not self._closed
            and self._phase == SessionPhase.ACTIVE
            and token is not None
            and token is self._token
        )

    def _set_status(self, status: AttentivenessState) -> None:
        changed = status != self._tracker.current
        self._tracker.set_status(status)
        if changed:
            self._emit(self.on_status, status)

    def _fail(self, message: str) -> None:
        self._last_error = message
        self._emit(self.on_error, message)

    def _emit(self, callback, *args) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            self._logger.exception("Session listener %r failed", callback)
