from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Protocol

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict

from .audio import MASTER_GAIN, SAMPLE_RATE, FloatArray, ensure_audio_contract
from .errors import PlaybackError

_LOGGER = logging.getLogger("tabata.playback")
_MAX_VOICES = 64


class Mixer:
    """Sums one-shot voices into output blocks for a realtime audio callback.

    ``add`` runs on the event loop thread and ``render`` on the audio thread; the voice
    list is only touched under the lock.
    """

    def __init__(self, *, gain: float = MASTER_GAIN, max_voices: int = _MAX_VOICES) -> None:
        self._gain = gain
        self._max_voices = max_voices
        self._voices: list[list[Any]] = []
        self._lock = threading.Lock()

    @property
    def voice_count(self) -> int:
        with self._lock:
            return len(self._voices)

    def add(self, samples: NDArray[np.floating[Any]]) -> None:
        if samples.size == 0:
            return
        with self._lock:
            if len(self._voices) >= self._max_voices:
                # oldest voice is furthest into its decay
                self._voices.pop(0)
            self._voices.append([samples, 0])

    def clear(self) -> None:
        with self._lock:
            self._voices.clear()

    def render(self, frames: int) -> FloatArray:
        block = np.zeros(frames, dtype=np.float64)
        with self._lock:
            alive: list[list[Any]] = []
            for voice in self._voices:
                samples, position = voice
                chunk = samples[position : position + frames]
                block[: len(chunk)] += chunk
                voice[1] = position + len(chunk)
                if voice[1] < len(samples):
                    alive.append(voice)
            self._voices = alive
        # Soft clip to prevent harsh distortion when cues stack on the loop.
        return np.tanh(block * self._gain).astype(np.float32)


class OutputStreamHandle(Protocol):
    def start(self) -> None: ...

    def stop(self) -> None: ...

    def close(self) -> None: ...


class PlaybackBackend(BaseModel):
    name: str
    open_stream: Callable[[Mixer, int], OutputStreamHandle]

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        arbitrary_types_allowed=True,
    )


def _load_sounddevice() -> PlaybackBackend | None:
    try:
        import sounddevice as sd_module  # type: ignore[import]
    except (ImportError, OSError) as exc:
        # OSError: the module imports but PortAudio itself is missing.
        _LOGGER.info("sounddevice not available: %s", exc, exc_info=True)
        return None
    sd: Any = sd_module

    def _open_stream(mixer: Mixer, sample_rate: int) -> OutputStreamHandle:
        def _callback(outdata: Any, frames: int, time_info: Any, status: Any) -> None:
            _ = time_info
            if status:
                _LOGGER.debug("Output stream status: %s", status)
            outdata[:, 0] = mixer.render(frames)

        return sd.OutputStream(
            samplerate=sample_rate,
            channels=1,
            dtype="float32",
            callback=_callback,
        )

    return PlaybackBackend(name="sounddevice", open_stream=_open_stream)


def load_backend() -> PlaybackBackend | None:
    return _load_sounddevice()


def resolve_backend(
    loader: Callable[[], PlaybackBackend | None] = load_backend,
) -> PlaybackBackend:
    backend = loader()
    if backend is None:
        raise PlaybackError("Playback requires sounddevice with a working PortAudio install.")
    return backend


class AudioOutput:
    """Lazily opened realtime output; silent until ``activate`` succeeds."""

    def __init__(
        self,
        *,
        sample_rate: int = SAMPLE_RATE,
        loader: Callable[[], PlaybackBackend | None] = load_backend,
        mixer: Mixer | None = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.mixer = mixer or Mixer()
        self._loader = loader
        self._stream: OutputStreamHandle | None = None
        self._lock = asyncio.Lock()
        self._warned = False
        self.backend_name: str | None = None

    @property
    def active(self) -> bool:
        return self._stream is not None

    async def activate(self) -> bool:
        if self._stream is not None:
            return True
        async with self._lock:
            if self._stream is not None:
                return True
            try:
                await asyncio.to_thread(self._open)
            except Exception as exc:
                level = logging.DEBUG if self._warned else logging.WARNING
                _LOGGER.log(level, "Audio output unavailable, continuing silently: %s", exc)
                self._warned = True
                return False
        _LOGGER.info("Audio output active via %s", self.backend_name)
        return True

    def _open(self) -> None:
        backend = resolve_backend(self._loader)
        stream = backend.open_stream(self.mixer, self.sample_rate)
        stream.start()
        self.backend_name = backend.name
        self._stream = stream

    def submit(self, samples: NDArray[np.floating[Any]]) -> None:
        if self._stream is None:
            return
        self.mixer.add(ensure_audio_contract(samples, check_peak=False))

    def close(self) -> None:
        stream, self._stream = self._stream, None
        dropped = self.mixer.voice_count
        self.mixer.clear()
        if stream is None:
            return
        _LOGGER.debug("Closing audio output, dropping %d voices", dropped)
        try:
            stream.stop()
            stream.close()
        except Exception as exc:
            _LOGGER.warning("Failed to close audio output: %s", exc, exc_info=True)
