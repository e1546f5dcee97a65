"""Phase state machine for an interval workout.

``transition`` is pure: it takes the current state, one event and the active config and
returns the next state together with the side effects (cues, loop and tick-source
changes) the caller has to execute, in order.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .config import Tempo, WorkoutConfig


class Phase(str, Enum):
    IDLE = "IDLE"
    PREPARE = "PREPARE"
    WORK = "WORK"
    REST = "REST"
    COMPLETE = "COMPLETE"


ACTIVE_PHASES = frozenset({Phase.PREPARE, Phase.WORK, Phase.REST})
EDITABLE_PHASES = frozenset({Phase.IDLE, Phase.COMPLETE})

# time_left values (read before the decrement) that announce the end of a phase
COUNTDOWN_SECONDS = frozenset({2, 3, 4})

PHASE_TEMPO: Mapping[Phase, Tempo] = MappingProxyType(
    {
        Phase.PREPARE: "slow",
        Phase.WORK: "fast",
        Phase.REST: "slow",
    }
)


class WorkoutState(BaseModel):
    phase: Phase = Phase.IDLE
    current_set: int = Field(default=1, ge=1)
    time_left: int = Field(default=0, ge=0)
    is_running: bool = False

    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def idle(cls, config: WorkoutConfig) -> "WorkoutState":
        return cls(
            phase=Phase.IDLE,
            current_set=1,
            time_left=config.prepare_duration,
            is_running=False,
        )


EffectKind = Literal[
    "countdown_cue",
    "transition_cue",
    "completion_cue",
    "start_loop",
    "stop_loop",
    "start_ticking",
    "stop_ticking",
]


class Effect(BaseModel):
    kind: EffectKind
    tempo: Tempo | None = None

    model_config = ConfigDict(frozen=True, extra="forbid")


COUNTDOWN_CUE = Effect(kind="countdown_cue")
TRANSITION_CUE = Effect(kind="transition_cue")
COMPLETION_CUE = Effect(kind="completion_cue")
STOP_LOOP = Effect(kind="stop_loop")
START_TICKING = Effect(kind="start_ticking")
STOP_TICKING = Effect(kind="stop_ticking")


def start_loop(tempo: Tempo) -> Effect:
    return Effect(kind="start_loop", tempo=tempo)


@dataclass(frozen=True, slots=True)
class Start:
    pass


@dataclass(frozen=True, slots=True)
class Tick:
    pass


@dataclass(frozen=True, slots=True)
class ToggleRunning:
    pass


@dataclass(frozen=True, slots=True)
class Reset:
    pass


@dataclass(frozen=True, slots=True)
class Reconfigure:
    config: WorkoutConfig


@dataclass(frozen=True, slots=True)
class MusicToggled:
    enabled: bool


Event = Start | Tick | ToggleRunning | Reset | Reconfigure | MusicToggled


class Transition(BaseModel):
    state: WorkoutState
    effects: tuple[Effect, ...] = ()
    accepted: bool = True

    model_config = ConfigDict(frozen=True, extra="forbid")


def phase_duration(config: WorkoutConfig, phase: Phase) -> int:
    match phase:
        case Phase.PREPARE | Phase.IDLE:
            return config.prepare_duration
        case Phase.WORK:
            return config.work_duration
        case Phase.REST:
            return config.rest_duration
        case _:
            return 0


def tempo_for(phase: Phase) -> Tempo | None:
    return PHASE_TEMPO.get(phase)


def can_edit_config(state: WorkoutState) -> bool:
    return state.phase in EDITABLE_PHASES and not state.is_running


def _rejected(state: WorkoutState) -> Transition:
    return Transition(state=state, accepted=False)


def _music(enabled: bool, phase: Phase) -> tuple[Effect, ...]:
    tempo = tempo_for(phase)
    if not enabled or tempo is None:
        return ()
    return (start_loop(tempo),)


def _countdown_due(state: WorkoutState, config: WorkoutConfig) -> bool:
    if state.time_left not in COUNTDOWN_SECONDS:
        return False
    # A phase of 4 s or less would otherwise beep one second after its own start cue.
    duration = phase_duration(config, state.phase)
    return not (duration <= max(COUNTDOWN_SECONDS) and state.time_left == duration)


def _on_start(state: WorkoutState, config: WorkoutConfig, music_enabled: bool) -> Transition:
    if state.phase not in EDITABLE_PHASES:
        return _rejected(state)
    next_state = WorkoutState(
        phase=Phase.PREPARE,
        current_set=1,
        time_left=config.prepare_duration,
        is_running=True,
    )
    effects = (COUNTDOWN_CUE, START_TICKING, *_music(music_enabled, Phase.PREPARE))
    return Transition(state=next_state, effects=effects)


def _complete_phase(
    state: WorkoutState, config: WorkoutConfig, music_enabled: bool
) -> Transition:
    match state.phase:
        case Phase.PREPARE:
            next_state = state.model_copy(
                update={"phase": Phase.WORK, "time_left": config.work_duration}
            )
        case Phase.WORK if state.current_set >= config.total_sets:
            next_state = state.model_copy(
                update={"phase": Phase.COMPLETE, "time_left": 0, "is_running": False}
            )
            return Transition(
                state=next_state,
                effects=(COMPLETION_CUE, STOP_LOOP, STOP_TICKING),
            )
        case Phase.WORK:
            next_state = state.model_copy(
                update={"phase": Phase.REST, "time_left": config.rest_duration}
            )
        case Phase.REST:
            next_state = state.model_copy(
                update={
                    "phase": Phase.WORK,
                    "current_set": state.current_set + 1,
                    "time_left": config.work_duration,
                }
            )
        case _:
            return _rejected(state)
    return Transition(
        state=next_state,
        effects=(TRANSITION_CUE, *_music(music_enabled, next_state.phase)),
    )


def _on_tick(state: WorkoutState, config: WorkoutConfig, music_enabled: bool) -> Transition:
    if not state.is_running or state.phase not in ACTIVE_PHASES:
        return _rejected(state)
    if state.time_left > 1:
        effects = (COUNTDOWN_CUE,) if _countdown_due(state, config) else ()
        next_state = state.model_copy(update={"time_left": state.time_left - 1})
        return Transition(state=next_state, effects=effects)
    # Reaching zero and leaving the phase are one logical step.
    return _complete_phase(state, config, music_enabled)


def _on_toggle_running(state: WorkoutState, music_enabled: bool) -> Transition:
    if state.phase not in ACTIVE_PHASES:
        return _rejected(state)
    if state.is_running:
        effects: tuple[Effect, ...] = (STOP_TICKING,)
        if music_enabled:
            effects += (STOP_LOOP,)
        return Transition(state=state.model_copy(update={"is_running": False}), effects=effects)
    return Transition(
        state=state.model_copy(update={"is_running": True}),
        effects=(START_TICKING, *_music(music_enabled, state.phase)),
    )


def _on_reconfigure(state: WorkoutState, config: WorkoutConfig) -> Transition:
    if not can_edit_config(state):
        return _rejected(state)
    if state.phase is Phase.IDLE:
        return Transition(state=WorkoutState.idle(config))
    current_set = min(state.current_set, config.total_sets)
    return Transition(state=state.model_copy(update={"current_set": current_set}))


def _on_music_toggled(state: WorkoutState, enabled: bool) -> Transition:
    if not enabled:
        return Transition(state=state, effects=(STOP_LOOP,))
    if not state.is_running:
        return Transition(state=state)
    return Transition(state=state, effects=_music(True, state.phase))


def transition(
    state: WorkoutState,
    event: Event,
    config: WorkoutConfig,
    *,
    music_enabled: bool = False,
) -> Transition:
    """Apply ``event`` to ``state``.

    ``config`` is the config in force for the run; for ``Reconfigure`` the event carries
    the candidate config instead. Events that are not valid in the current state come
    back with ``accepted=False``, the unchanged state and no effects.
    """
    match event:
        case Start():
            return _on_start(state, config, music_enabled)
        case Tick():
            return _on_tick(state, config, music_enabled)
        case ToggleRunning():
            return _on_toggle_running(state, music_enabled)
        case Reset():
            return Transition(
                state=WorkoutState.idle(config),
                effects=(STOP_TICKING, STOP_LOOP),
            )
        case Reconfigure(config=candidate):
            return _on_reconfigure(state, candidate)
        case MusicToggled(enabled=enabled):
            return _on_music_toggled(state, enabled)
        case _:
            return _rejected(state)
