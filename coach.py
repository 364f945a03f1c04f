from __future__ import annotations

import argparse
import asyncio
import os
import signal
import sys

from focuscoach.aggregator import SessionAggregator
from focuscoach.capture import build_capture
from focuscoach.config import AppSettings, get_settings
from focuscoach.feedback import FeedbackDispatcher
from focuscoach.gemini_client import GeminiClassifier, GeminiSummarizer
from focuscoach.local_llm_client import LocalLLMClassifier
from focuscoach.logging_utils import init_logger, init_status_logger
from focuscoach.models import AttentivenessState, SessionRecord
from focuscoach.report import render_session_markdown, session_slug
from focuscoach.session import SessionAbortedError, SessionController
from focuscoach.speech import AudioPlayer, GeminiSpeechSynthesizer
from focuscoach.storage import HistoryStore, SqliteBlobStore
from focuscoach.utils import ensure_directory

STATUS_LABELS = {
    AttentivenessState.IDLE: "Idle",
    AttentivenessState.ANALYZING: "Analyzing",
    AttentivenessState.FOCUSED: "Locked In",
    AttentivenessState.DISTRACTED: "Distracted",
    AttentivenessState.AWAY: "Away",
}


def main() -> None:
    parser = argparse.ArgumentParser(description="Run one AI focus coaching session")
    parser.add_argument("--minutes", type=float, default=None, help="End the session automatically after N minutes")
    parser.add_argument("--interval", type=float, default=None, help="Override ANALYSIS_INTERVAL_SECONDS")
    parser.add_argument("--source", choices=["camera", "screen"], default=None, help="Override CAPTURE_SOURCE")
    parser.add_argument("--no-voice", action="store_true", help="Disable spoken feedback")
    args = parser.parse_args()

    if args.interval is not None:
        os.environ["ANALYSIS_INTERVAL_SECONDS"] = str(args.interval)
    if args.source:
        os.environ["CAPTURE_SOURCE"] = args.source
    if args.no_voice:
        os.environ["ENABLE_VOICE_FEEDBACK"] = "false"

    settings = get_settings()
    logger = init_logger("coach", settings.logging.directory, settings.logging.level)
    sys.exit(asyncio.run(run_session(settings, logger, args.minutes)))


def session_timeout(minutes: float | None) -> float | None:
    """Seconds until auto-stop; None runs until a signal. Zero stops right after the first pass."""
    if minutes is None:
        return None
    return max(minutes, 0.0) * 60


def build_classifier(settings: AppSettings, logger):
    if settings.analyzer.backend == "local":
        logger.info("Analyzer backend: local (%s)", settings.local_llm.base_url)
        return LocalLLMClassifier(settings.local_llm, logger)
    logger.info("Analyzer backend: gemini (%s)", settings.gemini.model)
    return GeminiClassifier(settings.gemini, logger)


async def run_session(settings: AppSettings, logger, minutes: float | None) -> int:
    history = HistoryStore(SqliteBlobStore(settings.storage.history_db), logger, limit=settings.session.history_limit)
    await history.load()

    sampler = build_capture(settings.capture, logger)
    aggregator = SessionAggregator(
        GeminiSummarizer(settings.gemini, logger),
        logger,
        min_focused=settings.session.min_focused_entries,
        highlight_limit=settings.session.highlight_limit,
    )
    feedback = FeedbackDispatcher(
        GeminiSpeechSynthesizer(settings.gemini, logger),
        AudioPlayer(logger),
        logger,
        enabled=settings.session.voice_feedback,
    )
    controller = SessionController(
        sampler,
        build_classifier(settings, logger),
        aggregator,
        history,
        feedback,
        settings.session,
        logger,
        timezone=settings.timezone,
    )
    status_log = init_status_logger(settings.timezone)
    controller.on_status = lambda status: status_log.info("status: %s", STATUS_LABELS[status])
    controller.on_error = lambda message: status_log.info("error: %s", message)

    loop = asyncio.get_running_loop()
    stop_requested = asyncio.Event()

    def _graceful_stop(signum, frame):
        logger.info("Received signal %s - ending session", signum)
        loop.call_soon_threadsafe(stop_requested.set)

    signal.signal(signal.SIGINT, _graceful_stop)
    signal.signal(signal.SIGTERM, _graceful_stop)

    try:
        sampler.start()
    except RuntimeError as exc:
        logger.error("Capture source unavailable: %s", exc)
        print(f"Could not start capture: {exc}", file=sys.stderr)
        return 1

    waiters: list[asyncio.Task] = []
    try:
        status_log.info("session started - press Ctrl+C to end")
        await controller.start()
        waiters = [
            asyncio.create_task(stop_requested.wait()),
            asyncio.create_task(controller.wait_inactive()),
        ]
        await asyncio.wait(waiters, timeout=session_timeout(minutes), return_when=asyncio.FIRST_COMPLETED)

        if controller.is_active:
            status_log.info("generating your focus summary...")
            await controller.stop()

        try:
            record = await controller.wait_finished()
        except SessionAbortedError as exc:
            print(f"Something went wrong: {exc}", file=sys.stderr)
            return 1
    finally:
        for task in waiters:
            task.cancel()
        await controller.aclose()
        sampler.stop()

    if record is None:
        return 1
    _show_record(settings, record, logger)
    return 0


def _show_record(settings: AppSettings, record: SessionRecord, logger) -> None:
    markdown = render_session_markdown(record)
    print()
    print(markdown)

    export_dir = ensure_directory(settings.output.export_dir)
    export_path = export_dir / f"session-{session_slug(record, settings.timezone)}.md"
    export_path.write_text(markdown, encoding="utf-8")
    logger.info("Session report exported to %s", export_path)


if __name__ == "__main__":
    main()
