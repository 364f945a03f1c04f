from __future__ import annotations

import asyncio
import json
import random
import re
from typing import Any

import google.generativeai as genai

from .config import GeminiSettings
from .models import AttentivenessState, SessionFacts, SessionSummary
from .utils import data_url_to_image

CLASSIFY_PROMPT = (
    "Analyze this image of a person at their desk. Are they focused on their work, "
    "distracted, or away from the desk? Your answer must be a single word from this list: "
    "FOCUSED, DISTRACTED, AWAY."
)

SUMMARY_PROMPT = """
A user just finished a focus session of about {duration} minutes.
Their focus level was 'FOCUSED' for {focus:.0f}% of the time.
They were distracted or away at these times: {times}.

Analyze this session data and respond strictly as compact JSON with two keys:
  - summary: A brief, encouraging, and friendly summary (2-3 sentences) of their session. Acknowledge their effort.
  - tip: One actionable, concrete tip for improvement for their next session based on when they got distracted.
"""


class MalformedResponse(ValueError):
    pass


def parse_attentiveness(text: str | None) -> AttentivenessState:
    cleaned = (text or "").strip().upper()
    for state in (AttentivenessState.FOCUSED, AttentivenessState.DISTRACTED, AttentivenessState.AWAY):
        if state.value in cleaned:
            return state
    # Unrecognized answer: no classification was made.
    return AttentivenessState.ANALYZING


def parse_summary_payload(text: str | None) -> SessionSummary:
    cleaned = (text or "").strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.split("\n", 1)[1] if "\n" in cleaned else ""
        if "```" in cleaned:
            cleaned = cleaned.split("```", 1)[0]
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise MalformedResponse(f"Summary response is not JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise MalformedResponse("Summary response is not a JSON object")

    summary = payload.get("summary")
    tip = payload.get("tip")
    if not isinstance(summary, str) or not summary.strip():
        raise MalformedResponse("Summary response is missing 'summary'")
    if not isinstance(tip, str) or not tip.strip():
        raise MalformedResponse("Summary response is missing 'tip'")
    return SessionSummary(summary=summary.strip(), tip=tip.strip())


def build_summary_prompt(facts: SessionFacts) -> str:
    times = ", ".join(facts.distraction_times) if facts.distraction_times else "none"
    return SUMMARY_PROMPT.format(duration=facts.duration_minutes, focus=facts.focus_percentage, times=times)


class _GeminiBase:
    def __init__(self, settings: GeminiSettings, model_name: str, log):
        self._settings = settings
        self._logger = log
        genai.configure(api_key=settings.api_key)
        self._model = genai.GenerativeModel(model_name)

    async def _generate_with_retry(self, contents: Any, generation_config: dict[str, Any]):
        max_retries = self._settings.max_retries
        for attempt in range(max_retries + 1):
            try:
                return await self._model.generate_content_async(
                    contents,
                    generation_config=generation_config,
                    request_options={"timeout": self._settings.timeout_seconds},
                )
            except Exception as exc:
                if not self._is_rate_limited(exc) or attempt >= max_retries:
                    raise

                wait_seconds = self._compute_retry_wait_seconds(exc, attempt)
                wait_seconds = max(0.0, wait_seconds + max(0.0, self._settings.retry_buffer_seconds))
                self._logger.warning(
                    "Gemini rate limit hit (attempt %s/%s). Waiting %.1fs then retrying...",
                    attempt + 1,
                    max_retries + 1,
                    wait_seconds,
                )
                await asyncio.sleep(wait_seconds)

        raise RuntimeError("Gemini generate_content failed unexpectedly")

    def _is_rate_limited(self, exc: Exception) -> bool:
        from google.api_core.exceptions import ResourceExhausted

        if isinstance(exc, ResourceExhausted):
            return True
        message = str(exc)
        return "429" in message or "Quota exceeded" in message or "rate limit" in message.lower()

    def _compute_retry_wait_seconds(self, exc: Exception, attempt: int) -> float:
        # Prefer server-suggested delay if present.
        match = re.search(r"Please retry in\s+([0-9]+(?:\.[0-9]+)?)s", str(exc))
        if match:
            return float(match.group(1))

        base = min(60.0, (2.0 ** attempt))
        return base + random.uniform(0.0, 1.0)


class GeminiClassifier(_GeminiBase):
    def __init__(self, settings: GeminiSettings, log):
        super().__init__(settings, settings.model, log)

    async def classify(self, frame: str) -> AttentivenessState:
        image = data_url_to_image(frame)
        response = await self._generate_with_retry(
            [image, CLASSIFY_PROMPT],
            {"max_output_tokens": 16, "temperature": self._settings.temperature},
        )
        text = response.text or ""
        state = parse_attentiveness(text)
        if state == AttentivenessState.ANALYZING:
            self._logger.warning("Unrecognized classification %r; keeping ANALYZING", text[:80])
        return state


class GeminiSummarizer(_GeminiBase):
    def __init__(self, settings: GeminiSettings, log):
        super().__init__(settings, settings.summary_model, log)

    async def summarize(self, facts: SessionFacts) -> SessionSummary:
        response = await self._generate_with_retry(
            build_summary_prompt(facts),
            {
                "temperature": self._settings.temperature,
                "response_mime_type": "application/json",
            },
        )
        return parse_summary_payload(response.text)
