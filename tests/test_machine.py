from __future__ import annotations

import pytest

from tabata.config import WorkoutConfig
from tabata.machine import (
    COMPLETION_CUE,
    COUNTDOWN_CUE,
    START_TICKING,
    STOP_LOOP,
    STOP_TICKING,
    TRANSITION_CUE,
    Effect,
    MusicToggled,
    Phase,
    Reconfigure,
    Reset,
    Start,
    Tick,
    ToggleRunning,
    WorkoutState,
    start_loop,
    transition,
)

SCENARIO = WorkoutConfig(work_duration=20, rest_duration=10, total_sets=3, prepare_duration=5)


def _started(config: WorkoutConfig, *, music: bool = False) -> WorkoutState:
    result = transition(WorkoutState.idle(config), Start(), config, music_enabled=music)
    assert result.accepted
    return result.state


def _tick(
    state: WorkoutState, config: WorkoutConfig, count: int, *, music: bool = False
) -> tuple[WorkoutState, list[Effect]]:
    effects: list[Effect] = []
    for _ in range(count):
        result = transition(state, Tick(), config, music_enabled=music)
        assert result.accepted
        state = result.state
        effects.extend(result.effects)
    return state, effects


def test_idle_baseline_uses_prepare_duration() -> None:
    state = WorkoutState.idle(SCENARIO)
    assert state == WorkoutState(phase=Phase.IDLE, current_set=1, time_left=5, is_running=False)


def test_start_enters_prepare_with_countdown_and_ticking() -> None:
    result = transition(WorkoutState.idle(SCENARIO), Start(), SCENARIO)
    assert result.state == WorkoutState(
        phase=Phase.PREPARE, current_set=1, time_left=5, is_running=True
    )
    assert result.effects == (COUNTDOWN_CUE, START_TICKING)


def test_start_with_music_starts_slow_loop() -> None:
    result = transition(WorkoutState.idle(SCENARIO), Start(), SCENARIO, music_enabled=True)
    assert result.effects[-1] == start_loop("slow")


def test_full_scenario() -> None:
    state = _started(SCENARIO)
    assert (state.phase, state.time_left) == (Phase.PREPARE, 5)

    expected = [
        (5, Phase.WORK, 20, 1),
        (20, Phase.REST, 10, 1),
        (10, Phase.WORK, 20, 2),
        (20, Phase.REST, 10, 2),
        (10, Phase.WORK, 20, 3),
    ]
    for ticks, phase, time_left, current_set in expected:
        state, _ = _tick(state, SCENARIO, ticks)
        assert (state.phase, state.time_left, state.current_set) == (phase, time_left, current_set)
        assert state.is_running

    state, effects = _tick(state, SCENARIO, 20)
    assert state.phase is Phase.COMPLETE
    assert state.time_left == 0
    assert state.current_set == 3
    assert not state.is_running
    assert effects[-3:] == [COMPLETION_CUE, STOP_LOOP, STOP_TICKING]


@pytest.mark.parametrize(
    ("work", "rest", "sets", "prepare"),
    [(1, 1, 1, 1), (3, 2, 4, 1), (7, 5, 2, 10), (20, 10, 8, 5)],
)
def test_phase_order_and_set_counting(work: int, rest: int, sets: int, prepare: int) -> None:
    config = WorkoutConfig(
        work_duration=work, rest_duration=rest, total_sets=sets, prepare_duration=prepare
    )
    state = _started(config)
    phases = [state.phase]
    previous_time = state.time_left
    while state.phase is not Phase.COMPLETE:
        result = transition(state, Tick(), config)
        assert result.accepted
        nxt = result.state
        if nxt.phase is state.phase:
            assert nxt.time_left == previous_time - 1
        else:
            phases.append(nxt.phase)
            if (state.phase, nxt.phase) == (Phase.REST, Phase.WORK):
                assert nxt.current_set == state.current_set + 1
            else:
                assert nxt.current_set == state.current_set
        assert nxt.time_left >= 0
        assert 1 <= nxt.current_set <= sets
        state = nxt
        previous_time = state.time_left

    expected = [Phase.PREPARE, Phase.WORK]
    for _ in range(sets - 1):
        expected += [Phase.REST, Phase.WORK]
    expected.append(Phase.COMPLETE)
    assert phases == expected


def test_countdown_fires_at_four_three_two_only() -> None:
    config = WorkoutConfig(work_duration=8, rest_duration=6, total_sets=2, prepare_duration=5)
    state = _started(config)
    fired_at: list[tuple[Phase, int]] = []
    while state.phase is not Phase.COMPLETE:
        before = state
        result = transition(state, Tick(), config)
        if COUNTDOWN_CUE in result.effects:
            fired_at.append((before.phase, before.time_left))
        state = result.state

    for phase in (Phase.PREPARE, Phase.WORK, Phase.REST):
        assert {t for p, t in fired_at if p is phase} == {2, 3, 4}
    assert all(t not in (0, 1) for _, t in fired_at)
    # prepare, two work phases, one rest
    assert len(fired_at) == 3 * 4


def test_countdown_suppressed_on_first_tick_of_short_phase() -> None:
    config = WorkoutConfig(work_duration=10, rest_duration=3, total_sets=2, prepare_duration=5)
    state, _ = _tick(_started(config), config, 5 + 10)
    assert (state.phase, state.time_left) == (Phase.REST, 3)

    first = transition(state, Tick(), config)
    assert first.effects == ()
    second = transition(first.state, Tick(), config)
    assert second.effects == (COUNTDOWN_CUE,)
    third = transition(second.state, Tick(), config)
    assert third.state.phase is Phase.WORK
    assert COUNTDOWN_CUE not in third.effects


def test_phase_change_switches_loop_tempo_when_music_on() -> None:
    state = _started(SCENARIO, music=True)
    state, effects = _tick(state, SCENARIO, 5, music=True)
    assert state.phase is Phase.WORK
    assert effects[-2:] == [TRANSITION_CUE, start_loop("fast")]

    state, effects = _tick(state, SCENARIO, 20, music=True)
    assert state.phase is Phase.REST
    assert effects[-2:] == [TRANSITION_CUE, start_loop("slow")]


def test_phase_change_without_music_only_plays_buzzer() -> None:
    state, effects = _tick(_started(SCENARIO), SCENARIO, 5)
    assert state.phase is Phase.WORK
    assert effects[-1] == TRANSITION_CUE
    assert all(effect.kind != "start_loop" for effect in effects)


def test_tick_rejected_when_not_running() -> None:
    idle = WorkoutState.idle(SCENARIO)
    assert not transition(idle, Tick(), SCENARIO).accepted

    paused = transition(_started(SCENARIO), ToggleRunning(), SCENARIO).state
    result = transition(paused, Tick(), SCENARIO)
    assert not result.accepted
    assert result.state == paused
    assert result.effects == ()


def test_tick_rejected_after_complete() -> None:
    config = WorkoutConfig(work_duration=1, rest_duration=1, total_sets=1, prepare_duration=1)
    state, _ = _tick(_started(config), config, 2)
    assert state.phase is Phase.COMPLETE
    result = transition(state, Tick(), config)
    assert not result.accepted
    assert result.state == state


def test_toggle_running_pauses_and_resumes() -> None:
    running, _ = _tick(_started(SCENARIO, music=True), SCENARIO, 6, music=True)
    assert running.phase is Phase.WORK

    paused = transition(running, ToggleRunning(), SCENARIO, music_enabled=True)
    assert paused.state == running.model_copy(update={"is_running": False})
    assert paused.effects == (STOP_TICKING, STOP_LOOP)

    resumed = transition(paused.state, ToggleRunning(), SCENARIO, music_enabled=True)
    assert resumed.state == running
    assert resumed.effects == (START_TICKING, start_loop("fast"))


def test_toggle_running_rejected_in_idle_and_complete() -> None:
    assert not transition(WorkoutState.idle(SCENARIO), ToggleRunning(), SCENARIO).accepted
    done = WorkoutState(phase=Phase.COMPLETE, current_set=3, time_left=0, is_running=False)
    assert not transition(done, ToggleRunning(), SCENARIO).accepted


def test_start_rejected_mid_run() -> None:
    state = _started(SCENARIO)
    result = transition(state, Start(), SCENARIO)
    assert not result.accepted
    assert result.state == state


def test_start_from_complete_begins_new_run() -> None:
    done = WorkoutState(phase=Phase.COMPLETE, current_set=3, time_left=0, is_running=False)
    result = transition(done, Start(), SCENARIO)
    assert result.accepted
    assert result.state == WorkoutState(
        phase=Phase.PREPARE, current_set=1, time_left=5, is_running=True
    )


@pytest.mark.parametrize("ticks", [0, 3, 5, 17, 40])
def test_reset_from_any_point_returns_to_baseline(ticks: int) -> None:
    state, _ = _tick(_started(SCENARIO), SCENARIO, ticks)
    result = transition(state, Reset(), SCENARIO)
    assert result.state == WorkoutState(
        phase=Phase.IDLE, current_set=1, time_left=5, is_running=False
    )
    assert result.effects == (STOP_TICKING, STOP_LOOP)


def test_reconfigure_rejected_while_running_or_paused() -> None:
    running = _started(SCENARIO)
    other = SCENARIO.model_copy(update={"prepare_duration": 9})
    result = transition(running, Reconfigure(config=other), SCENARIO)
    assert not result.accepted
    assert result.state == running

    paused = transition(running, ToggleRunning(), SCENARIO).state
    assert not transition(paused, Reconfigure(config=other), SCENARIO).accepted


def test_reconfigure_in_idle_resyncs_time_left() -> None:
    other = SCENARIO.model_copy(update={"prepare_duration": 9})
    result = transition(WorkoutState.idle(SCENARIO), Reconfigure(config=other), SCENARIO)
    assert result.accepted
    assert result.state.time_left == 9


def test_reconfigure_in_complete_clamps_current_set() -> None:
    done = WorkoutState(phase=Phase.COMPLETE, current_set=3, time_left=0, is_running=False)
    fewer = SCENARIO.model_copy(update={"total_sets": 2})
    result = transition(done, Reconfigure(config=fewer), SCENARIO)
    assert result.accepted
    assert result.state == done.model_copy(update={"current_set": 2})


def test_music_toggle_effects_follow_phase_tempo() -> None:
    running, _ = _tick(_started(SCENARIO), SCENARIO, 5)
    assert running.phase is Phase.WORK
    on = transition(running, MusicToggled(enabled=True), SCENARIO, music_enabled=True)
    assert on.state == running
    assert on.effects == (start_loop("fast"),)

    off = transition(running, MusicToggled(enabled=False), SCENARIO)
    assert off.effects == (STOP_LOOP,)


def test_music_toggle_on_while_idle_or_paused_does_not_start_loop() -> None:
    idle = WorkoutState.idle(SCENARIO)
    assert transition(idle, MusicToggled(enabled=True), SCENARIO).effects == ()

    paused = transition(_started(SCENARIO), ToggleRunning(), SCENARIO).state
    assert transition(paused, MusicToggled(enabled=True), SCENARIO).effects == ()
