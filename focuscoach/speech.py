from __future__ import annotations

import asyncio
import base64
import binascii
import re
from dataclasses import dataclass

import numpy as np
import requests

from .config import GeminiSettings

TTS_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
DEFAULT_SAMPLE_RATE = 24000


class SpeechSynthesisError(RuntimeError):
    pass


@dataclass(frozen=True)
class SynthesizedAudio:
    pcm: bytes
    sample_rate: int = DEFAULT_SAMPLE_RATE


def sample_rate_from_mime(mime_type: str | None) -> int:
    match = re.search(r"rate=(\d+)", mime_type or "")
    return int(match.group(1)) if match else DEFAULT_SAMPLE_RATE


def decode_pcm(audio: SynthesizedAudio) -> np.ndarray:
    """16-bit little-endian mono PCM as an int16 array."""
    usable = len(audio.pcm) - (len(audio.pcm) % 2)
    return np.frombuffer(audio.pcm[:usable], dtype="<i2")


class GeminiSpeechSynthesizer:
    def __init__(self, settings: GeminiSettings, log):
        self._settings = settings
        self._logger = log

    async def synthesize(self, text: str) -> SynthesizedAudio:
        return await asyncio.to_thread(self._request, text)

    def _request(self, text: str) -> SynthesizedAudio:
        payload = {
            "contents": [{"parts": [{"text": f"Say with a calm, encouraging tone: {text}"}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": self._settings.tts_voice}},
                },
            },
        }
        headers = {
            "x-goog-api-key": self._settings.api_key,
            "Content-Type": "application/json",
        }
        url = TTS_ENDPOINT.format(model=self._settings.tts_model)
        try:
            response = requests.post(url, headers=headers, json=payload, timeout=self._settings.timeout_seconds)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise SpeechSynthesisError(f"Speech synthesis request failed: {exc}") from exc
        return self._extract_audio(data)

    def _extract_audio(self, data) -> SynthesizedAudio:
        try:
            inline = data["candidates"][0]["content"]["parts"][0]["inlineData"]
            encoded = inline["data"]
        except (KeyError, IndexError, TypeError) as exc:
            raise SpeechSynthesisError("No audio data received from TTS API") from exc
        if not isinstance(encoded, str) or not encoded:
            raise SpeechSynthesisError("No audio data received from TTS API")

        try:
            pcm = base64.b64decode(encoded, validate=True)
        except binascii.Error as exc:
            raise SpeechSynthesisError(f"TTS audio is not valid base64: {exc}") from exc
        return SynthesizedAudio(pcm=pcm, sample_rate=sample_rate_from_mime(inline.get("mimeType")))


class AudioPlayer:
    def __init__(self, log):
        self._logger = log

    async def play(self, audio: SynthesizedAudio) -> None:
        await asyncio.to_thread(self._play_blocking, audio)

    def _play_blocking(self, audio: SynthesizedAudio) -> None:
        import sounddevice as sd

        samples = decode_pcm(audio)
        if samples.size == 0:
            return
        # The stream context releases the output device on every exit path.
        with sd.OutputStream(samplerate=audio.sample_rate, channels=1, dtype="int16") as stream:
            stream.write(samples.reshape(-1, 1))
        self._logger.debug("Played %.1fs of feedback audio", samples.size / audio.sample_rate)
