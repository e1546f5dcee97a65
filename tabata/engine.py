"""Audio cue engine: one-shot cues and the tempo-locked background loop.

The engine knows nothing about workout phases. Every operation is fire-and-forget and
becomes a silent no-op while the audio output is unavailable.
"""

from __future__ import annotations

import logging
from typing import Callable, Protocol

from .audio import SAMPLE_RATE
from .config import Tempo, step_interval
from .playback import AudioOutput
from .scheduler import PeriodicFactory, PeriodicSource, repeating_task
from .synth import LOOP_STEPS, completion_cue, countdown_cue, loop_step, transition_cue

_LOGGER = logging.getLogger("tabata.engine")


class CueEngine(Protocol):
    async def ensure_audio_ready(self) -> bool: ...

    def play_countdown_cue(self) -> None: ...

    def play_phase_transition_cue(self) -> None: ...

    def play_completion_cue(self) -> None: ...

    def start_loop(self, tempo: Tempo) -> None: ...

    def stop_loop(self) -> None: ...

    def close(self) -> None: ...


class MusicLoopHandle:
    """A single background loop bound to the tempo it was started with."""

    def __init__(
        self,
        tempo: Tempo,
        on_step: Callable[[Tempo, int], None],
        *,
        periodic: PeriodicFactory = repeating_task,
    ) -> None:
        self.tempo: Tempo = tempo
        self.step = 0
        self._on_step = on_step
        self._source: PeriodicSource = periodic(
            step_interval(tempo), self._advance, f"tabata-loop-{tempo}"
        )

    @property
    def active(self) -> bool:
        return self._source.active

    def start(self) -> None:
        self._source.start()

    def cancel(self) -> None:
        self._source.cancel()

    def _advance(self) -> None:
        self._on_step(self.tempo, self.step)
        self.step = (self.step + 1) % LOOP_STEPS


class AudioCueEngine:
    def __init__(
        self,
        output: AudioOutput | None = None,
        *,
        periodic: PeriodicFactory = repeating_task,
    ) -> None:
        self.output = output or AudioOutput(sample_rate=SAMPLE_RATE)
        self._periodic = periodic
        self._loop: MusicLoopHandle | None = None

    @property
    def loop(self) -> MusicLoopHandle | None:
        return self._loop

    async def ensure_audio_ready(self) -> bool:
        return await self.output.activate()

    def play_countdown_cue(self) -> None:
        if self.output.active:
            self.output.submit(countdown_cue())

    def play_phase_transition_cue(self) -> None:
        if self.output.active:
            self.output.submit(transition_cue())

    def play_completion_cue(self) -> None:
        if self.output.active:
            self.output.submit(completion_cue())

    def start_loop(self, tempo: Tempo) -> None:
        self.stop_loop()
        handle = MusicLoopHandle(tempo, self._play_step, periodic=self._periodic)
        self._loop = handle
        handle.start()
        _LOGGER.debug("Loop started at %s tempo", tempo)

    def stop_loop(self) -> None:
        handle, self._loop = self._loop, None
        if handle is None:
            return
        handle.cancel()
        _LOGGER.debug("Loop stopped at step %d", handle.step)

    def close(self) -> None:
        self.stop_loop()
        self.output.close()

    def _play_step(self, tempo: Tempo, step: int) -> None:
        if not self.output.active:
            return
        self.output.submit(loop_step(tempo, step))


class SilentCueEngine:
    """Engine stand-in for runs without audio."""

    async def ensure_audio_ready(self) -> bool:
        return False

    def play_countdown_cue(self) -> None:
        return None

    def play_phase_transition_cue(self) -> None:
        return None

    def play_completion_cue(self) -> None:
        return None

    def start_loop(self, tempo: Tempo) -> None:
        _ = tempo

    def stop_loop(self) -> None:
        return None

    def close(self) -> None:
        return None
