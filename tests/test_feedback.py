"""Tests for spoken feedback dispatch."""

import asyncio
import logging
import random

import pytest

from focuscoach.feedback import ENCOURAGEMENTS, FeedbackDispatcher, pick_message
from focuscoach.speech import SpeechSynthesisError, SynthesizedAudio

_LOG = logging.getLogger("test.feedback")


class _Synth:
    def __init__(self, error=None):
        self.error = error
        self.texts = []

    async def synthesize(self, text):
        self.texts.append(text)
        if self.error is not None:
            raise self.error
        return SynthesizedAudio(pcm=b"\x00\x00" * 10)


class _Player:
    def __init__(self, error=None, block=False):
        self.error = error
        self.block = block
        self.played = []

    async def play(self, audio):
        if self.block:
            await asyncio.sleep(3600)
        if self.error is not None:
            raise self.error
        self.played.append(audio)


def test_pick_message_is_deterministic_with_seed():
    a = [pick_message(random.Random(7)) for _ in range(3)]
    b = [pick_message(random.Random(7)) for _ in range(3)]
    assert a == b
    assert all(message in ENCOURAGEMENTS for message in a)


def test_pick_message_rejects_empty_catalog():
    with pytest.raises(ValueError):
        pick_message(random.Random(), catalog=())


def test_dispatch_synthesizes_and_plays():
    synth, player = _Synth(), _Player()
    dispatcher = FeedbackDispatcher(synth, player, _LOG, rng=random.Random(1))

    async def scenario():
        task = dispatcher.dispatch()
        await task

    asyncio.run(scenario())
    assert len(synth.texts) == 1
    assert synth.texts[0] in ENCOURAGEMENTS
    assert len(player.played) == 1
    assert dispatcher.pending == 0


def test_synthesis_failure_is_swallowed():
    player = _Player()
    dispatcher = FeedbackDispatcher(_Synth(error=SpeechSynthesisError("no audio")), player, _LOG)

    async def scenario():
        await dispatcher.dispatch()

    asyncio.run(scenario())
    assert player.played == []


def test_playback_failure_is_swallowed():
    dispatcher = FeedbackDispatcher(_Synth(), _Player(error=OSError("no device")), _LOG)

    async def scenario():
        await dispatcher.dispatch()

    asyncio.run(scenario())


def test_disabled_dispatcher_does_nothing():
    synth = _Synth()
    dispatcher = FeedbackDispatcher(synth, _Player(), _LOG, enabled=False)

    async def scenario():
        return dispatcher.dispatch()

    assert asyncio.run(scenario()) is None
    assert synth.texts == []


def test_aclose_cancels_outstanding_feedback():
    dispatcher = FeedbackDispatcher(_Synth(), _Player(block=True), _LOG)

    async def scenario():
        task = dispatcher.dispatch()
        await asyncio.sleep(0)
        await dispatcher.aclose()
        return task

    task = asyncio.run(scenario())
    assert task.cancelled()
    assert dispatcher.pending == 0
