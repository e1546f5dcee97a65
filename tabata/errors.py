from __future__ import annotations


class TabataError(Exception):
    """Base error for the tabata package."""


class InvalidConfigError(TabataError):
    """Raised when a workout config or tempo cannot be parsed or validated."""


class PlaybackError(TabataError):
    """Raised when no usable audio output is available."""
