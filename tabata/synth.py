# pyright: reportUnknownVariableType=false
# pyright: reportUnknownMemberType=false
# pyright: reportUnknownArgumentType=false

"""
Architecture:

1. Primitives: oscillators, envelopes, filters
2. Voices: brass stab, kick, snare, hi-hat
3. Cues and loop steps: pre-rendered buffers the cue engine hands to the mixer
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from functools import lru_cache
from types import MappingProxyType
from typing import Callable, TypeAlias

import numpy as np
from numpy.typing import NDArray
from scipy.signal import butter, lfilter  # type: ignore[import]

from .audio import SAMPLE_RATE
from .config import Tempo, step_interval
from .errors import InvalidConfigError

FloatArray: TypeAlias = NDArray[np.float64]
OscFn: TypeAlias = Callable[[float, float, int], FloatArray]

# =============================================================================
# CONSTANTS
# =============================================================================

LOOP_STEPS = 32
MELODY_STEPS = 16

COUNTDOWN_FREQ = 440.0
TRANSITION_FREQS = (110.0, 164.81)
TRANSITION_STAGGER = 0.1
COMPLETION_FREQS = (261.63, 329.63, 392.00, 523.25)
COMPLETION_STAGGER = 0.15

# C -> G -> F -> G -> C (octave) rising fourths and fifths; 0.0 is a rest.
FAST_MELODY: tuple[float, ...] = (
    261.63, 0.0, 392.00, 0.0,
    349.23, 0.0, 392.00, 0.0,
    523.25, 523.25, 0.0, 440.00,
    392.00, 0.0, 329.63, 0.0,
)  # fmt: skip
SLOW_PULSE_FREQ = 65.41  # low C

# (frequency multiplier, gain multiplier, waveform) for the three brass layers
_BRASS_LAYERS: tuple[tuple[float, float, str], ...] = (
    (1.0, 1.0, "sawtooth"),
    (1.006, 0.7, "sawtooth"),
    (0.5, 0.4, "square"),
)

_ENVELOPE_FLOOR = 0.001


# =============================================================================
# PART 1: PRIMITIVES
# =============================================================================


def _phases(freq: float, duration: float, sr: int) -> FloatArray:
    t = np.arange(int(sr * duration)) / sr
    return (t * freq) % 1.0


def generate_sine(freq: float, duration: float, sr: int = SAMPLE_RATE) -> FloatArray:
    """Generate a unit-amplitude sine wave."""
    return np.sin(2 * np.pi * _phases(freq, duration, sr))


def generate_sawtooth(freq: float, duration: float, sr: int = SAMPLE_RATE) -> FloatArray:
    """Generate a naive sawtooth; callers lowpass it."""
    return 2.0 * _phases(freq, duration, sr) - 1.0


def generate_square(freq: float, duration: float, sr: int = SAMPLE_RATE) -> FloatArray:
    return np.where(_phases(freq, duration, sr) < 0.5, 1.0, -1.0)


def generate_triangle(freq: float, duration: float, sr: int = SAMPLE_RATE) -> FloatArray:
    return 2.0 * np.abs(2.0 * _phases(freq, duration, sr) - 1.0) - 1.0


def generate_noise(
    duration: float, rng: np.random.Generator, sr: int = SAMPLE_RATE
) -> FloatArray:
    """Generate uniform white noise in [-1, 1)."""
    return rng.uniform(-1.0, 1.0, int(sr * duration))


_OSCILLATORS: Mapping[str, OscFn] = MappingProxyType(
    {
        "sine": generate_sine,
        "sawtooth": generate_sawtooth,
        "square": generate_square,
        "triangle": generate_triangle,
    }
)


def exp_envelope(
    num_samples: int,
    peak: float,
    decay: float,
    *,
    attack: float = 0.0,
    sr: int = SAMPLE_RATE,
) -> FloatArray:
    """Linear attack to ``peak``, then exponential fall to the floor at ``decay`` seconds."""
    t = np.arange(num_samples) / sr
    fall_time = max(decay - attack, 1e-4)
    ratio = _ENVELOPE_FLOOR / peak
    fall = peak * ratio ** (np.clip(t - attack, 0.0, None) / fall_time)
    if attack <= 0:
        return fall
    rise = peak * np.clip(t / attack, 0.0, 1.0)
    return np.where(t < attack, rise, fall)


@lru_cache(maxsize=128)
def _butter_cached(
    kind: str, normalized_cutoff: float
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    coeffs = butter(2, normalized_cutoff, btype=kind, output="ba")
    assert isinstance(coeffs, tuple)
    b_raw, a_raw = coeffs
    return np.asarray(b_raw, dtype=np.float64), np.asarray(a_raw, dtype=np.float64)


def _normalized(cutoff: float, sr: int) -> float:
    return round(min(max(cutoff / (sr / 2), 0.001), 0.99), 3)


def apply_lowpass(signal: FloatArray, cutoff: float, sr: int = SAMPLE_RATE) -> FloatArray:
    b, a = _butter_cached("low", _normalized(cutoff, sr))
    return np.asarray(lfilter(b, a, signal), dtype=np.float64)


def apply_highpass(signal: FloatArray, cutoff: float, sr: int = SAMPLE_RATE) -> FloatArray:
    b, a = _butter_cached("high", _normalized(cutoff, sr))
    return np.asarray(lfilter(b, a, signal), dtype=np.float64)


def add_note(signal: FloatArray, note: FloatArray, start_index: int) -> None:
    """Mix ``note`` into ``signal`` at ``start_index``, clipping at the buffer end."""
    if start_index >= len(signal) or note.size == 0:
        return
    end_index = min(start_index + len(note), len(signal))
    signal[start_index:end_index] += note[: end_index - start_index]


def layer(events: Iterable[tuple[float, FloatArray]], sr: int = SAMPLE_RATE) -> FloatArray:
    """Sum ``(offset_seconds, buffer)`` events into one buffer long enough for all."""
    placed = [(int(offset * sr), note) for offset, note in events]
    if not placed:
        return np.zeros(0)
    length = max(start + len(note) for start, note in placed)
    signal = np.zeros(length)
    for start, note in placed:
        add_note(signal, note, start)
    return signal


# =============================================================================
# PART 2: VOICES
# =============================================================================


def brass(freq: float, decay: float, gain: float, sr: int = SAMPLE_RATE) -> FloatArray:
    """Detuned saw pair plus a sub square, lowpassed, with a quick 20 ms attack."""
    num_samples = int(sr * decay)
    signal = np.zeros(num_samples)
    for freq_mult, gain_mult, waveform in _BRASS_LAYERS:
        osc = _OSCILLATORS[waveform]
        wave = osc(freq * freq_mult, decay, sr)
        envelope = exp_envelope(num_samples, gain * gain_mult, decay, attack=0.02, sr=sr)
        signal += wave[:num_samples] * envelope
    return apply_lowpass(signal, freq * 4, sr)


def kick(sr: int = SAMPLE_RATE) -> FloatArray:
    """Sine swept down from 180 Hz over half a second."""
    duration = 0.5
    num_samples = int(sr * duration)
    t = np.arange(num_samples) / sr
    freq = 180.0 * (0.01 / 180.0) ** (t / duration)
    phase = 2 * np.pi * np.cumsum(freq) / sr
    return np.sin(phase) * exp_envelope(num_samples, 1.8, duration, sr=sr)


def hat(rng: np.random.Generator, sr: int = SAMPLE_RATE) -> FloatArray:
    decay = 0.08
    noise = apply_highpass(generate_noise(decay, rng, sr), 1000, sr)
    return noise * exp_envelope(len(noise), 0.04, decay, sr=sr)


def snare(rng: np.random.Generator, sr: int = SAMPLE_RATE) -> FloatArray:
    """Highpassed noise burst over a short triangle body."""
    decay = 0.25
    noise = apply_highpass(generate_noise(decay, rng, sr), 1000, sr)
    noise *= exp_envelope(len(noise), 0.3, decay, sr=sr)
    body_dur = 0.15
    body = generate_triangle(220.0, body_dur, sr)
    body *= exp_envelope(len(body), 0.5, body_dur, sr=sr)
    return layer(((0.0, noise), (0.0, body)), sr)


# =============================================================================
# PART 3: CUES AND LOOP STEPS
# =============================================================================


def _frozen(signal: FloatArray) -> FloatArray:
    signal.setflags(write=False)
    return signal


@lru_cache(maxsize=None)
def countdown_cue() -> FloatArray:
    return _frozen(brass(COUNTDOWN_FREQ, 0.4, 0.6))


@lru_cache(maxsize=None)
def transition_cue() -> FloatArray:
    low, high = TRANSITION_FREQS
    return _frozen(
        layer(
            (
                (0.0, brass(low, 0.8, 0.8)),
                (TRANSITION_STAGGER, brass(high, 0.6, 0.6)),
            )
        )
    )


@lru_cache(maxsize=None)
def completion_cue() -> FloatArray:
    return _frozen(
        layer(
            (index * COMPLETION_STAGGER, brass(freq, 1.0, 0.5))
            for index, freq in enumerate(COMPLETION_FREQS)
        )
    )


def drum_hits(step: int) -> tuple[str, ...]:
    """Drum voices struck at ``step`` of the 32-step pattern."""
    position = step % LOOP_STEPS
    hits: list[str] = []
    if position % 4 == 0:
        hits.append("kick")
    if position % 8 == 4:
        hits.append("snare")
    if position % 2 == 1:
        hits.append("hat")
    return tuple(hits)


def melody_note(tempo: Tempo, step: int) -> float:
    """Lead frequency at ``step``; 0.0 means silence."""
    match tempo:
        case "fast":
            return FAST_MELODY[step % MELODY_STEPS]
        case "slow":
            return SLOW_PULSE_FREQ if step % 8 == 0 else 0.0
        case _:
            raise InvalidConfigError(f"Unknown tempo: {tempo!r}")


@lru_cache(maxsize=2 * LOOP_STEPS)
def loop_step(tempo: Tempo, step: int) -> FloatArray:
    """Audio for one loop step; an empty buffer when the step is silent."""
    position = step % LOOP_STEPS
    rng = np.random.default_rng(position)
    events: list[tuple[float, FloatArray]] = []
    for hit in drum_hits(position):
        match hit:
            case "kick":
                events.append((0.0, kick()))
            case "snare":
                events.append((0.0, snare(rng)))
            case _:
                events.append((0.0, hat(rng)))
    freq = melody_note(tempo, position)
    if freq > 0:
        if tempo == "fast":
            events.append((0.0, brass(freq, 0.5, 0.4)))
            events.append((0.0, brass(freq * 0.5, 0.5, 0.2)))
        else:
            events.append((0.0, brass(freq, 0.8, 0.3)))
    return _frozen(layer(events))


def render_loop(tempo: Tempo, seconds: float) -> FloatArray:
    """Offline rendering of the background loop, step counter starting at 0."""
    if seconds <= 0:
        raise InvalidConfigError(f"loop length must be positive, got {seconds!r}")
    interval = step_interval(tempo)
    num_steps = max(1, int(seconds / interval))
    steps = ((index * interval, loop_step(tempo, index % LOOP_STEPS)) for index in range(num_steps))
    signal = layer(steps)
    return signal[: int(seconds * SAMPLE_RATE)]
