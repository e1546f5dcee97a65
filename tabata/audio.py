from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any, Callable, cast

import numpy as np
import soundfile as sf  # type: ignore[import]
from numpy.typing import NDArray

from .errors import InvalidConfigError

FloatArray = NDArray[np.float32]
AudioNumbers = NDArray[np.floating[Any]] | Sequence[float] | FloatArray

SAMPLE_RATE = 44_100
# Headroom the mixer applies before soft clipping.
MASTER_GAIN = 0.75


def ensure_audio_contract(
    audio: AudioNumbers,
    *,
    check_peak: bool = True,
) -> FloatArray:
    """Normalize dtype/range/shape to mono float32 in [-1, 1]."""

    mono: FloatArray = np.asarray(audio, dtype=np.float32).reshape(-1)
    if mono.size == 0 or not check_peak:
        return mono
    peak = float(np.max(np.abs(mono)))
    if peak > 1.0:
        mono = mono / peak
    return mono


def _looks_like_samples(sequence: Sequence[object]) -> bool:
    match sequence:
        case []:
            return True
        case [int() | float() | np.floating(), *_]:
            return True
        case _:
            return False


def write_wav(
    path: str | Path,
    audio: AudioNumbers,
    *,
    sample_rate: int = SAMPLE_RATE,
) -> Path:
    """Write a mono buffer to a wav file."""

    target = Path(path)
    audio_obj: object = audio
    match audio_obj:
        case np.ndarray():
            samples = ensure_audio_contract(cast(AudioNumbers, audio_obj))
        case str() | bytes():
            raise InvalidConfigError("audio must be a sample array or a sequence of floats")
        case Sequence() as sequence if _looks_like_samples(sequence):
            samples = ensure_audio_contract(cast(Sequence[float], sequence))
        case _:
            raise InvalidConfigError("audio must be a sample array or a sequence of floats")

    write_fn = getattr(sf, "write", None)
    assert callable(write_fn)
    write_audio = cast(Callable[[Path | str, AudioNumbers, int], None], write_fn)
    target.parent.mkdir(parents=True, exist_ok=True)
    write_audio(target, samples, sample_rate)  # type: ignore[reportUnknownMemberType]
    return target
