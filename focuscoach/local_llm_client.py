from __future__ import annotations

import asyncio
from typing import Any

import requests

from .config import LocalLLMSettings
from .gemini_client import CLASSIFY_PROMPT, parse_attentiveness
from .models import AttentivenessState


class LocalLLMClassifier:
    """Classifier using an OpenAI-compatible HTTP API (e.g., LM Studio).

    Expected base URL: http://localhost:1234/v1
    Endpoint used:     POST {base_url}/chat/completions
    """

    def __init__(self, settings: LocalLLMSettings, log):
        self._settings = settings
        self._logger = log
        self._model = self._resolve_model(settings)

    async def classify(self, frame: str) -> AttentivenessState:
        text = await asyncio.to_thread(self._chat_with_image, frame)
        state = parse_attentiveness(text)
        if state == AttentivenessState.ANALYZING:
            self._logger.warning("Unrecognized classification %r; keeping ANALYZING", text[:80])
        return state

    def _chat_with_image(self, frame: str) -> str:
        url = f"{self._settings.base_url}/chat/completions"

        headers: dict[str, str] = {
            "Content-Type": "application/json",
        }
        if self._settings.api_key:
            headers["Authorization"] = f"Bearer {self._settings.api_key}"

        payload: dict[str, Any] = {
            "model": self._model,
            "temperature": self._settings.temperature,
            "max_tokens": self._settings.max_tokens,
            "stream": False,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": CLASSIFY_PROMPT},
                        {"type": "image_url", "image_url": {"url": frame}},
                    ],
                },
            ],
        }

        try:
            res = requests.post(url, headers=headers, json=payload, timeout=self._settings.timeout_seconds)
        except requests.RequestException as exc:
            raise RuntimeError(f"Local LLM request failed: {exc}") from exc

        if res.status_code >= 400:
            raise RuntimeError(f"Local LLM HTTP {res.status_code}: {res.text}")

        data = res.json()
        text = (((data.get("choices") or [{}])[0]).get("message") or {}).get("content")

        if isinstance(text, list):
            # Some servers may return structured content; join text chunks.
            parts = []
            for item in text:
                if isinstance(item, dict) and item.get("type") == "text":
                    parts.append(str(item.get("text") or ""))
            text = "\n".join(p for p in parts if p)

        return text if isinstance(text, str) else ""

    def _resolve_model(self, settings: LocalLLMSettings) -> str:
        configured = (settings.model or "").strip()
        if configured and configured.lower() not in {"local-model", "auto"}:
            return configured

        # Auto-detect via OpenAI-compatible models endpoint.
        try:
            res = requests.get(f"{settings.base_url}/models", timeout=min(10.0, settings.timeout_seconds))
            if res.status_code >= 400:
                self._logger.warning("Local LLM models discovery failed (HTTP %s)", res.status_code)
                return configured or "local-model"

            models = res.json().get("data")
            if isinstance(models, list) and models:
                first = models[0]
                if isinstance(first, dict) and first.get("id"):
                    model_id = str(first["id"])
                    self._logger.info("Auto-selected LOCAL_LLM_MODEL=%s", model_id)
                    return model_id
        except (requests.RequestException, ValueError) as exc:
            self._logger.warning("Local LLM models discovery failed: %s", exc)

        return configured or "local-model"
