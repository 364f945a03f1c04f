from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo

from dotenv import load_dotenv


@dataclass(frozen=True)
class SessionSettings:
    analysis_interval_seconds: float = 8.0
    tick_seconds: float = 1.0
    history_limit: int = 50
    highlight_limit: int = 5
    min_focused_entries: int = 2
    voice_feedback: bool = True


@dataclass(frozen=True)
class CaptureSettings:
    source: str
    camera_index: int
    jpeg_quality: int


@dataclass(frozen=True)
class GeminiSettings:
    api_key: str
    model: str
    summary_model: str
    tts_model: str
    tts_voice: str
    temperature: float
    max_retries: int = 5
    retry_buffer_seconds: float = 0.5
    timeout_seconds: float = 60.0


@dataclass(frozen=True)
class LocalLLMSettings:
    base_url: str
    model: str
    api_key: str | None
    temperature: float
    max_tokens: int
    timeout_seconds: float


@dataclass(frozen=True)
class AnalyzerSettings:
    backend: str


@dataclass(frozen=True)
class StorageSettings:
    data_dir: Path
    history_db: Path


@dataclass(frozen=True)
class LoggingSettings:
    directory: Path
    level: str = "INFO"


@dataclass(frozen=True)
class OutputSettings:
    export_dir: Path


@dataclass(frozen=True)
class AppSettings:
    timezone: ZoneInfo
    session: SessionSettings
    capture: CaptureSettings
    analyzer: AnalyzerSettings
    gemini: GeminiSettings
    local_llm: LocalLLMSettings
    storage: StorageSettings
    logging: LoggingSettings
    output: OutputSettings


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    dotenv_path = Path(__file__).resolve().parents[1] / ".env"
    load_dotenv(dotenv_path=dotenv_path, override=False, encoding="utf-8-sig")

    tz_name = os.getenv("TIMEZONE", "UTC")
    timezone = ZoneInfo(tz_name)

    session = SessionSettings(
        analysis_interval_seconds=float(os.getenv("ANALYSIS_INTERVAL_SECONDS", "8")),
        tick_seconds=float(os.getenv("TICK_SECONDS", "1")),
        history_limit=int(os.getenv("HISTORY_LIMIT", "50")),
        highlight_limit=int(os.getenv("HIGHLIGHT_LIMIT", "5")),
        min_focused_entries=int(os.getenv("MIN_FOCUSED_ENTRIES", "2")),
        voice_feedback=_as_bool(os.getenv("ENABLE_VOICE_FEEDBACK"), default=True),
    )

    capture = CaptureSettings(
        source=os.getenv("CAPTURE_SOURCE", "camera").strip().lower(),
        camera_index=int(os.getenv("CAMERA_INDEX", "0")),
        jpeg_quality=int(os.getenv("JPEG_QUALITY", "80")),
    )

    backend = os.getenv("ANALYZER_BACKEND", "gemini").strip().lower()
    if backend not in {"gemini", "local"}:
        raise RuntimeError(f"Unsupported ANALYZER_BACKEND '{backend}' (expected 'gemini' or 'local')")

    # Summaries and voice feedback always go through Gemini, so the key is required
    # even when classification runs against a local model.
    gemini = GeminiSettings(
        api_key=_require("GEMINI_API_KEY"),
        model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        summary_model=os.getenv("GEMINI_SUMMARY_MODEL", "gemini-2.5-flash"),
        tts_model=os.getenv("GEMINI_TTS_MODEL", "gemini-2.5-flash-preview-tts"),
        tts_voice=os.getenv("GEMINI_TTS_VOICE", "Zephyr"),
        temperature=float(os.getenv("GEMINI_TEMPERATURE", "0.4")),
        max_retries=int(os.getenv("GEMINI_MAX_RETRIES", "5")),
        retry_buffer_seconds=float(os.getenv("GEMINI_RETRY_BUFFER_SECONDS", "0.5")),
        timeout_seconds=float(os.getenv("GEMINI_TIMEOUT_SECONDS", "60")),
    )

    local_llm = LocalLLMSettings(
        base_url=os.getenv("LOCAL_LLM_BASE_URL", "http://localhost:1234/v1").rstrip("/"),
        model=os.getenv("LOCAL_LLM_MODEL", "auto"),
        api_key=os.getenv("LOCAL_LLM_API_KEY") or None,
        temperature=float(os.getenv("LOCAL_LLM_TEMPERATURE", "0.0")),
        max_tokens=int(os.getenv("LOCAL_LLM_MAX_TOKENS", "16")),
        timeout_seconds=float(os.getenv("LOCAL_LLM_TIMEOUT_SECONDS", "30")),
    )

    data_dir = Path(os.getenv("DATA_DIR", "data")).resolve()
    storage = StorageSettings(
        data_dir=data_dir,
        history_db=Path(os.getenv("HISTORY_DB", str(data_dir / "focuscoach.db"))).resolve(),
    )

    logging_settings = LoggingSettings(
        directory=Path(os.getenv("LOG_DIR", "logs")).resolve(),
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )

    output_settings = OutputSettings(
        export_dir=Path(os.getenv("REPORT_EXPORT_DIR", "reports")).resolve(),
    )

    return AppSettings(
        timezone=timezone,
        session=session,
        capture=capture,
        analyzer=AnalyzerSettings(backend=backend),
        gemini=gemini,
        local_llm=local_llm,
        storage=storage,
        logging=logging_settings,
        output=output_settings,
    )


def _require(key: str) -> str:
    value = os.getenv(key)
    if not value:
        raise RuntimeError(f"Environment variable '{key}' is required but missing")
    return value


def _as_bool(raw: str | None, default: bool | None = None) -> bool:
    if raw is None:
        if default is None:
            return False
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}
