from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict

from .config import WorkoutConfig, WorkoutConfigUpdate, coerce_update
from .engine import CueEngine, SilentCueEngine
from .logging_utils import log_exception
from .machine import (
    Effect,
    Event,
    MusicToggled,
    Reconfigure,
    Reset,
    Start,
    Tick,
    ToggleRunning,
    Transition,
    WorkoutState,
    can_edit_config,
    transition,
)
from .scheduler import PeriodicFactory, PeriodicSource, repeating_task

_LOGGER = logging.getLogger("tabata.controller")
TICK_SECONDS = 1.0


class Snapshot(BaseModel):
    """Read-only view handed to renderers after every change."""

    state: WorkoutState
    config: WorkoutConfig
    music_enabled: bool = False

    model_config = ConfigDict(frozen=True, extra="forbid")


Listener = Callable[[Snapshot], None]


class WorkoutController:
    """Owns the workout state, the tick source and the audio side effects.

    All state changes go through ``machine.transition``; the controller only executes the
    effects it returns. Use ``async with`` (or call ``close``) so the tick source and the
    music loop never outlive the session.
    """

    def __init__(
        self,
        engine: CueEngine | None = None,
        config: WorkoutConfig | None = None,
        *,
        music_enabled: bool = False,
        periodic: PeriodicFactory = repeating_task,
        tick_seconds: float = TICK_SECONDS,
    ) -> None:
        self._engine: CueEngine = engine if engine is not None else SilentCueEngine()
        self._config = config or WorkoutConfig()
        self._state = WorkoutState.idle(self._config)
        self._music_enabled = music_enabled
        self._periodic = periodic
        self._tick_seconds = tick_seconds
        self._ticker: PeriodicSource | None = None
        # Bumped whenever the tick source changes; ticks from older sources are dropped.
        self._generation = 0
        self._listeners: list[Listener] = []

    @property
    def state(self) -> WorkoutState:
        return self._state

    @property
    def config(self) -> WorkoutConfig:
        return self._config

    @property
    def music_enabled(self) -> bool:
        return self._music_enabled

    @property
    def ticking(self) -> bool:
        return self._ticker is not None and self._ticker.active

    @property
    def snapshot(self) -> Snapshot:
        return Snapshot(state=self._state, config=self._config, music_enabled=self._music_enabled)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def start(self) -> bool:
        await self._engine.ensure_audio_ready()
        return self._dispatch(Start()).accepted

    async def toggle_running(self) -> bool:
        await self._engine.ensure_audio_ready()
        return self._dispatch(ToggleRunning()).accepted

    async def toggle_music(self) -> bool:
        """Flip the music preference and return the new value."""
        await self._engine.ensure_audio_ready()
        self._music_enabled = not self._music_enabled
        self._dispatch(MusicToggled(enabled=self._music_enabled))
        return self._music_enabled

    def reset(self) -> None:
        self._dispatch(Reset())

    def tick(self) -> None:
        """Advance the timer by one second."""
        self._dispatch(Tick())

    def set_config(
        self,
        update: WorkoutConfigUpdate | Mapping[str, Any] | None = None,
        **fields: Any,
    ) -> bool:
        """Apply a partial config edit.

        Returns ``False`` without touching anything when a run is in progress; raises
        ``InvalidConfigError`` for values outside the allowed ranges.
        """
        if not can_edit_config(self._state):
            _LOGGER.debug("Config edit rejected in %s", self._state.phase.value)
            return False
        candidate = coerce_update(update, **fields).apply_to(self._config)
        result = self._dispatch(Reconfigure(config=candidate), config=candidate)
        if result.accepted:
            self._config = candidate
            self._notify()
        return result.accepted

    def close(self) -> None:
        """Cancel the tick source and the music loop; the engine itself stays open."""
        self._stop_ticking()
        self._engine.stop_loop()

    async def __aenter__(self) -> "WorkoutController":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def _dispatch(self, event: Event, *, config: WorkoutConfig | None = None) -> Transition:
        result = transition(
            self._state,
            event,
            config or self._config,
            music_enabled=self._music_enabled,
        )
        if not result.accepted:
            _LOGGER.debug(
                "%s ignored in %s (running=%s)",
                type(event).__name__,
                self._state.phase.value,
                self._state.is_running,
            )
            return result
        previous = self._state
        self._state = result.state
        if previous.phase is not result.state.phase:
            _LOGGER.info(
                "Phase %s -> %s (set %d/%d)",
                previous.phase.value,
                result.state.phase.value,
                result.state.current_set,
                self._config.total_sets,
            )
        for effect in result.effects:
            self._apply(effect)
        if not isinstance(event, Reconfigure):
            self._notify()
        return result

    def _apply(self, effect: Effect) -> None:
        match effect.kind:
            case "start_ticking":
                self._start_ticking()
                return
            case "stop_ticking":
                self._stop_ticking()
                return
            case _:
                pass
        try:
            match effect.kind:
                case "countdown_cue":
                    self._engine.play_countdown_cue()
                case "transition_cue":
                    self._engine.play_phase_transition_cue()
                case "completion_cue":
                    self._engine.play_completion_cue()
                case "start_loop":
                    assert effect.tempo is not None
                    self._engine.start_loop(effect.tempo)
                case "stop_loop":
                    self._engine.stop_loop()
        except Exception as exc:
            # Audio never blocks the timer.
            _LOGGER.warning("Audio effect %s failed: %s", effect.kind, exc, exc_info=True)
            log_exception(f"audio effect {effect.kind}", exc)

    def _start_ticking(self) -> None:
        self._stop_ticking()
        generation = self._generation

        def _on_tick() -> None:
            if generation != self._generation:
                return
            self.tick()

        ticker = self._periodic(self._tick_seconds, _on_tick, "tabata-tick")
        self._ticker = ticker
        ticker.start()

    def _stop_ticking(self) -> None:
        self._generation += 1
        ticker, self._ticker = self._ticker, None
        if ticker is not None:
            ticker.cancel()

    def _notify(self) -> None:
        snapshot = self.snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as exc:
                _LOGGER.warning("Snapshot listener failed: %s", exc, exc_info=True)
