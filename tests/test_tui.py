from __future__ import annotations

from typing import Callable

import pytest
from textual.widgets import Static

from tabata.config import WorkoutConfig
from tabata.controller import WorkoutController
from tabata.engine import SilentCueEngine
from tabata.logging_utils import LOG_DIR_ENV
from tabata.machine import Phase
from tabata.tui import TabataApp, describe_config


class ManualTicker:
    def __init__(self, interval: float, callback: Callable[[], None], name: str) -> None:
        self.callback = callback
        self.cancelled = False

    @property
    def active(self) -> bool:
        return not self.cancelled

    def start(self) -> None:
        return None

    def cancel(self) -> None:
        self.cancelled = True


def _controller(**config: int) -> tuple[WorkoutController, list[ManualTicker]]:
    created: list[ManualTicker] = []

    def _factory(interval: float, callback: Callable[[], None], name: str) -> ManualTicker:
        ticker = ManualTicker(interval, callback, name)
        created.append(ticker)
        return ticker

    controller = WorkoutController(
        SilentCueEngine(), WorkoutConfig(**config), periodic=_factory
    )
    return controller, created


def test_describe_config() -> None:
    text = describe_config(WorkoutConfig(work_duration=30, rest_duration=15, total_sets=4))
    assert text == "work 30s · rest 15s · rounds 4 · prepare 5s"


@pytest.mark.asyncio
async def test_space_starts_and_pauses(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv(LOG_DIR_ENV, str(tmp_path))
    controller, created = _controller()
    async with TabataApp(controller).run_test() as pilot:
        assert pilot.app.query_one("#timer", Static)
        await pilot.press("space")
        assert controller.state.phase is Phase.PREPARE
        assert controller.state.is_running

        created[-1].callback()
        await pilot.pause()
        assert controller.state.time_left == 4

        await pilot.press("space")
        assert not controller.state.is_running
        assert created[-1].cancelled


@pytest.mark.asyncio
async def test_reset_key_returns_to_idle(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv(LOG_DIR_ENV, str(tmp_path))
    controller, _ = _controller()
    async with TabataApp(controller).run_test() as pilot:
        await pilot.press("space")
        await pilot.press("r")
        assert controller.state.phase is Phase.IDLE
        assert not controller.ticking


@pytest.mark.asyncio
async def test_digit_keys_edit_config_in_idle(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv(LOG_DIR_ENV, str(tmp_path))
    controller, _ = _controller()
    async with TabataApp(controller).run_test() as pilot:
        await pilot.press("2", "2", "3", "6")
        assert controller.config.work_duration == 22
        assert controller.config.rest_duration == 9
        assert controller.config.total_sets == 9


@pytest.mark.asyncio
async def test_out_of_range_edit_is_ignored(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv(LOG_DIR_ENV, str(tmp_path))
    controller, _ = _controller(total_sets=1)
    async with TabataApp(controller).run_test() as pilot:
        await pilot.press("5")
        assert controller.config.total_sets == 1


@pytest.mark.asyncio
async def test_config_locked_while_running(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv(LOG_DIR_ENV, str(tmp_path))
    controller, _ = _controller()
    async with TabataApp(controller).run_test() as pilot:
        await pilot.press("space", "2")
        assert controller.config.work_duration == 20


@pytest.mark.asyncio
async def test_music_key_toggles_preference(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv(LOG_DIR_ENV, str(tmp_path))
    controller, _ = _controller()
    async with TabataApp(controller).run_test() as pilot:
        await pilot.press("m")
        assert controller.music_enabled
        await pilot.press("m")
        assert not controller.music_enabled


@pytest.mark.asyncio
async def test_quit_cancels_ticking(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv(LOG_DIR_ENV, str(tmp_path))
    controller, created = _controller()
    async with TabataApp(controller).run_test() as pilot:
        await pilot.press("space")
        await pilot.press("q")
    assert created[-1].cancelled
