from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path

from rich.console import Console

from .audio import SAMPLE_RATE, write_wav
from .config import WorkoutConfig, WorkoutConfigUpdate
from .controller import WorkoutController
from .engine import AudioCueEngine, CueEngine, SilentCueEngine
from .logging_utils import DEBUG_ENV, configure_logging, get_log_path, log_exception
from .synth import completion_cue, countdown_cue, render_loop, transition_cue
from .tui import run_tui

_LOGGER = logging.getLogger("tabata.cli")
_CONSOLE = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tabata")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run the interval timer in the terminal.")
    run.add_argument("--work", type=int, help="Work interval in seconds.")
    run.add_argument("--rest", type=int, help="Rest interval in seconds.")
    run.add_argument("--sets", type=int, help="Number of rounds.")
    run.add_argument("--prepare", type=int, help="Get-ready countdown in seconds.")
    run.add_argument("--music", action="store_true", help="Start with background music on.")
    run.add_argument("--silent", action="store_true", help="Disable all audio output.")

    cues = sub.add_parser("cues", help="Render cue sounds and loop patterns to wav files.")
    cues.add_argument("--output-dir", type=str, default="tabata-cues")
    cues.add_argument("--loop-seconds", type=float, default=8.0)
    return parser


def resolve_config(args: argparse.Namespace) -> WorkoutConfig:
    """Defaults, then ``TABATA_*`` environment, then command-line flags."""
    update = WorkoutConfigUpdate(
        work_duration=args.work,
        rest_duration=args.rest,
        total_sets=args.sets,
        prepare_duration=args.prepare,
    )
    return update.apply_to(WorkoutConfig.from_env())


def render_cues(output_dir: Path, loop_seconds: float) -> list[Path]:
    buffers = {
        "countdown.wav": countdown_cue(),
        "transition.wav": transition_cue(),
        "completion.wav": completion_cue(),
        "loop-fast.wav": render_loop("fast", loop_seconds),
        "loop-slow.wav": render_loop("slow", loop_seconds),
    }
    return [write_wav(output_dir / name, audio) for name, audio in buffers.items()]


def _run(args: argparse.Namespace) -> int:
    config = resolve_config(args)
    # The TUI owns the terminal; keep log records in the file only.
    configure_logging(force=True, console=False)
    engine: CueEngine = SilentCueEngine() if args.silent else AudioCueEngine()
    controller = WorkoutController(engine, config, music_enabled=args.music)
    try:
        run_tui(controller)
    finally:
        controller.close()
        engine.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    try:
        parser = build_parser()
        args = parser.parse_args(argv)

        if args.command == "run":
            return _run(args)

        if args.command == "cues":
            with _CONSOLE.status("Rendering cue sounds"):
                paths = render_cues(Path(args.output_dir), args.loop_seconds)
            for path in paths:
                _CONSOLE.print(f"Wrote {path} (sr={SAMPLE_RATE})")
            return 0

        parser.print_help()
        return 1
    except Exception as exc:
        debug = bool(os.environ.get(DEBUG_ENV))
        _LOGGER.warning("tabata CLI failed: %s", exc, exc_info=debug)
        log_exception("tabata CLI", exc)
        _CONSOLE.print(f"[red]tabata failed:[/red] {exc}")
        _CONSOLE.print(f"Details in {get_log_path()}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
