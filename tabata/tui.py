from __future__ import annotations

import logging
from typing import ClassVar

from textual.app import App, ComposeResult
from textual.binding import Binding, BindingType
from textual.containers import Vertical
from textual.css.query import NoMatches
from textual.widgets import Footer, Header, Static

from .config import WorkoutConfig
from .controller import Snapshot, WorkoutController
from .display import render_snapshot
from .errors import InvalidConfigError
from .loop import install_uvloop_policy
from .machine import EDITABLE_PHASES

_LOGGER = logging.getLogger("tabata.tui")

# key -> (config field, delta)
_CONFIG_KEYS: dict[str, tuple[str, int]] = {
    "1": ("work_duration", -1),
    "2": ("work_duration", 1),
    "3": ("rest_duration", -1),
    "4": ("rest_duration", 1),
    "5": ("total_sets", -1),
    "6": ("total_sets", 1),
}


def describe_config(config: WorkoutConfig) -> str:
    return (
        f"work {config.work_duration}s · rest {config.rest_duration}s · "
        f"rounds {config.total_sets} · prepare {config.prepare_duration}s"
    )


class TabataApp(App[None]):
    """Terminal front end: renders snapshots and forwards keys to the controller."""

    TITLE = "Tabata"
    CSS = """
    Screen {
        align: center middle;
    }

    #timer {
        content-align: center middle;
        width: 40;
        height: 9;
        border: round $accent;
    }

    #config {
        content-align: center middle;
        width: 60;
        color: grey;
    }
    """
    BINDINGS: ClassVar[list[BindingType]] = [
        Binding("space", "primary", "Start/Pause"),
        Binding("r", "reset", "Reset"),
        Binding("m", "music", "Music"),
        Binding("q", "quit", "Quit"),
        *(Binding(key, f"adjust('{key}')", show=False) for key in _CONFIG_KEYS),
    ]

    def __init__(self, controller: WorkoutController) -> None:
        super().__init__()
        self.controller = controller
        self._unsubscribe = controller.subscribe(self._on_snapshot)

    def compose(self) -> ComposeResult:
        yield Header(show_clock=False)
        with Vertical():
            yield Static(render_snapshot(self.controller.snapshot), id="timer")
            yield Static(describe_config(self.controller.config), id="config")
        yield Footer()

    def on_unmount(self) -> None:
        self._unsubscribe()
        self.controller.close()

    async def action_primary(self) -> None:
        if self.controller.state.phase in EDITABLE_PHASES:
            await self.controller.start()
        else:
            await self.controller.toggle_running()

    def action_reset(self) -> None:
        self.controller.reset()

    async def action_music(self) -> None:
        enabled = await self.controller.toggle_music()
        _LOGGER.debug("Music preference now %s", enabled)

    def action_adjust(self, key: str) -> None:
        field, delta = _CONFIG_KEYS[key]
        current = getattr(self.controller.config, field)
        try:
            accepted = self.controller.set_config(**{field: current + delta})
        except InvalidConfigError:
            self.bell()
            return
        if not accepted:
            self.notify("Settings are locked while a run is in progress.", severity="warning")

    def _on_snapshot(self, snapshot: Snapshot) -> None:
        try:
            timer = self.query_one("#timer", Static)
            config = self.query_one("#config", Static)
        except NoMatches:
            return
        timer.update(render_snapshot(snapshot))
        config.update(describe_config(snapshot.config))


def run_tui(controller: WorkoutController) -> None:
    install_uvloop_policy()
    TabataApp(controller).run()
