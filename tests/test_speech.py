"""Tests for the speech synthesis response handling."""

import base64
import logging

import pytest
import requests

from focuscoach.config import GeminiSettings
from focuscoach.speech import (
    GeminiSpeechSynthesizer,
    SpeechSynthesisError,
    SynthesizedAudio,
    decode_pcm,
    sample_rate_from_mime,
)

_LOG = logging.getLogger("test.speech")


def _settings() -> GeminiSettings:
    return GeminiSettings(
        api_key="test-key",
        model="gemini-2.5-flash",
        summary_model="gemini-2.5-flash",
        tts_model="gemini-2.5-flash-preview-tts",
        tts_voice="Zephyr",
        temperature=0.4,
        timeout_seconds=5.0,
    )


def _tts_payload(pcm: bytes, mime: str = "audio/L16;codec=pcm;rate=24000") -> dict:
    return {
        "candidates": [
            {"content": {"parts": [{"inlineData": {"mimeType": mime, "data": base64.b64encode(pcm).decode()}}]}}
        ]
    }


class _Response:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")

    def json(self):
        return self._payload


def test_extracts_pcm_and_sample_rate():
    synth = GeminiSpeechSynthesizer(_settings(), _LOG)
    audio = synth._extract_audio(_tts_payload(b"\x01\x00\x02\x00", "audio/L16;codec=pcm;rate=16000"))
    assert audio.pcm == b"\x01\x00\x02\x00"
    assert audio.sample_rate == 16000


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"candidates": []},
        {"candidates": [{"content": {"parts": [{"text": "no audio"}]}}]},
        {"candidates": [{"content": {"parts": [{"inlineData": {"data": ""}}]}}]},
        {"candidates": [{"content": {"parts": [{"inlineData": {"data": "@@not-base64@@"}}]}}]},
    ],
)
def test_missing_audio_is_a_synthesis_error(payload):
    synth = GeminiSpeechSynthesizer(_settings(), _LOG)
    with pytest.raises(SpeechSynthesisError):
        synth._extract_audio(payload)


def test_network_failure_is_a_synthesis_error(monkeypatch):
    def _boom(*args, **kwargs):
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(requests, "post", _boom)
    synth = GeminiSpeechSynthesizer(_settings(), _LOG)
    with pytest.raises(SpeechSynthesisError):
        synth._request("hello")


def test_http_error_is_a_synthesis_error(monkeypatch):
    monkeypatch.setattr(requests, "post", lambda *a, **k: _Response({}, status_code=500))
    synth = GeminiSpeechSynthesizer(_settings(), _LOG)
    with pytest.raises(SpeechSynthesisError):
        synth._request("hello")


def test_request_sends_voice_and_text(monkeypatch):
    captured = {}

    def _post(url, headers, json, timeout):
        captured.update(url=url, headers=headers, json=json)
        return _Response(_tts_payload(b"\x00\x00"))

    monkeypatch.setattr(requests, "post", _post)
    audio = GeminiSpeechSynthesizer(_settings(), _LOG)._request("Breathe.")

    assert audio.sample_rate == 24000
    assert "gemini-2.5-flash-preview-tts:generateContent" in captured["url"]
    assert captured["headers"]["x-goog-api-key"] == "test-key"
    assert captured["json"]["contents"][0]["parts"][0]["text"].endswith("Breathe.")
    voice = captured["json"]["generationConfig"]["speechConfig"]["voiceConfig"]["prebuiltVoiceConfig"]
    assert voice["voiceName"] == "Zephyr"


def test_sample_rate_defaults_when_missing():
    assert sample_rate_from_mime(None) == 24000
    assert sample_rate_from_mime("audio/L16;rate=44100") == 44100


def test_decode_pcm_drops_trailing_odd_byte():
    samples = decode_pcm(SynthesizedAudio(pcm=b"\x01\x00\xff\x7f\x05"))
    assert samples.tolist() == [1, 32767]
