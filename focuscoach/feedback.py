from __future__ import annotations

import asyncio
import random
from typing import Optional, Sequence, Set

ENCOURAGEMENTS: tuple[str, ...] = (
    "Let's step back into focus. You've got this.",
    "Deep breath. Bring your attention back to the task.",
    "Your goals are waiting - let's lean back in.",
    "Friendly reminder: refocus and keep your momentum.",
)


def pick_message(rng: random.Random, catalog: Sequence[str] = ENCOURAGEMENTS) -> str:
    if not catalog:
        raise ValueError("Encouragement catalog must not be empty")
    return catalog[rng.randrange(len(catalog))]


class FeedbackDispatcher:
    """Speaks a short encouragement when the user drifts off.

    Dispatch is fire-and-forget: the caller gets the task back but never has to
    await it, and nothing raised while synthesizing or playing escapes it.
    """

    def __init__(self, synthesizer, player, log, *, rng: Optional[random.Random] = None, enabled: bool = True):
        self._synthesizer = synthesizer
        self._player = player
        self._logger = log
        self._rng = rng or random.Random()
        self._enabled = enabled
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self) -> Optional[asyncio.Task]:
        if not self._enabled:
            return None
        message = pick_message(self._rng)
        task = asyncio.create_task(self._speak(message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _speak(self, message: str) -> None:
        try:
            audio = await self._synthesizer.synthesize(message)
            await self._player.play(audio)
            self._logger.info("Voice feedback played: %s", message)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._logger.warning("Voice feedback failed: %s", exc)

    async def aclose(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
