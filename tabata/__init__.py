from __future__ import annotations

from .audio import SAMPLE_RATE
from .config import TEMPO_BPM, Tempo, WorkoutConfig, WorkoutConfigUpdate
from .controller import Snapshot, WorkoutController
from .engine import AudioCueEngine, CueEngine, MusicLoopHandle, SilentCueEngine
from .errors import InvalidConfigError, PlaybackError, TabataError
from .logging_utils import configure_logging as _configure_logging
from .machine import Effect, Phase, Transition, WorkoutState, transition
from .scheduler import RepeatingTask

__all__ = [
    "SAMPLE_RATE",
    "TEMPO_BPM",
    "AudioCueEngine",
    "CueEngine",
    "Effect",
    "InvalidConfigError",
    "MusicLoopHandle",
    "Phase",
    "PlaybackError",
    "RepeatingTask",
    "SilentCueEngine",
    "Snapshot",
    "TabataError",
    "Tempo",
    "Transition",
    "WorkoutConfig",
    "WorkoutConfigUpdate",
    "WorkoutController",
    "WorkoutState",
    "transition",
]

__version__ = "0.1.0"

_configure_logging()
del _configure_logging
