from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

from rich.text import Text

from .controller import Snapshot
from .machine import Phase

PHASE_LABELS: Mapping[Phase, str] = MappingProxyType(
    {
        Phase.IDLE: "READY",
        Phase.PREPARE: "GET READY",
        Phase.WORK: "GO!",
        Phase.REST: "REST",
        Phase.COMPLETE: "FINISHED",
    }
)

PHASE_STYLES: Mapping[Phase, str] = MappingProxyType(
    {
        Phase.IDLE: "grey50",
        Phase.PREPARE: "yellow",
        Phase.WORK: "bold red",
        Phase.REST: "green",
        Phase.COMPLETE: "blue",
    }
)


def format_time(seconds: int) -> str:
    """``MM:SS`` for a non-negative number of seconds."""
    minutes, secs = divmod(max(seconds, 0), 60)
    return f"{minutes:02d}:{secs:02d}"


def phase_label(phase: Phase) -> str:
    return PHASE_LABELS[phase]


def progress_dots(current_set: int, total_sets: int) -> str:
    """One dot per round: done, current, pending."""
    dots = []
    for index in range(1, total_sets + 1):
        if index < current_set:
            dots.append("●")
        elif index == current_set:
            dots.append("◉")
        else:
            dots.append("○")
    return " ".join(dots)


def render_snapshot(snapshot: Snapshot) -> Text:
    state = snapshot.state
    style = PHASE_STYLES[state.phase]
    shown = 0 if state.phase is Phase.COMPLETE else state.time_left
    text = Text(justify="center")
    text.append(f"{phase_label(state.phase)}\n", style=style)
    text.append(f"{format_time(shown)}\n", style=style)
    text.append(f"{state.current_set} / {snapshot.config.total_sets}\n")
    text.append(progress_dots(state.current_set, snapshot.config.total_sets))
    if snapshot.music_enabled:
        text.append("\n♪ music on", style="magenta")
    if state.phase not in (Phase.IDLE, Phase.COMPLETE) and not state.is_running:
        text.append("\n(paused)", style="dim")
    return text
