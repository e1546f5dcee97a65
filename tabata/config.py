from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import InvalidConfigError

_LOGGER = logging.getLogger("tabata.config")

Tempo = Literal["fast", "slow"]

MAX_DURATION_SECONDS = 60
MAX_SETS = 30

# Beats per minute for the background loop; one loop step is a sixteenth note.
TEMPO_BPM: Mapping[Tempo, float] = MappingProxyType(
    {
        "fast": 148.0,
        "slow": 92.0,
    }
)

_ENV_FIELDS: Mapping[str, str] = MappingProxyType(
    {
        "TABATA_WORK": "work_duration",
        "TABATA_REST": "rest_duration",
        "TABATA_SETS": "total_sets",
        "TABATA_PREPARE": "prepare_duration",
    }
)


def tempo_to_bpm(value: Tempo) -> float:
    try:
        return TEMPO_BPM[value]
    except KeyError as exc:
        raise InvalidConfigError(f"Unknown tempo: {value!r}") from exc


def step_interval(value: Tempo) -> float:
    """Seconds between two loop steps at the given tempo."""
    return 60.0 / tempo_to_bpm(value) / 4


class WorkoutConfig(BaseModel):
    """Durations (seconds) and round count for one run."""

    work_duration: int = Field(default=20, ge=1, le=MAX_DURATION_SECONDS)
    rest_duration: int = Field(default=10, ge=1, le=MAX_DURATION_SECONDS)
    prepare_duration: int = Field(default=5, ge=1, le=MAX_DURATION_SECONDS)
    total_sets: int = Field(default=8, ge=1, le=MAX_SETS)

    model_config = ConfigDict(frozen=True, extra="forbid", strict=True)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "WorkoutConfig":
        """Build a config from ``TABATA_*`` variables, falling back to the defaults."""
        source = os.environ if env is None else env
        values: dict[str, Any] = {}
        for key, field_name in _ENV_FIELDS.items():
            raw = source.get(key)
            if raw is None or raw == "":
                continue
            try:
                values[field_name] = int(raw)
            except ValueError as exc:
                raise InvalidConfigError(f"{key} must be an integer, got {raw!r}") from exc
        return coerce_config(values)


class WorkoutConfigUpdate(BaseModel):
    """Partial config edit; unset fields keep their current value."""

    work_duration: int | None = None
    rest_duration: int | None = None
    prepare_duration: int | None = None
    total_sets: int | None = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    def apply_to(self, base: WorkoutConfig) -> WorkoutConfig:
        merged = base.model_dump()
        merged.update(self.model_dump(exclude_none=True))
        return coerce_config(merged)


def coerce_config(data: Mapping[str, Any] | WorkoutConfig) -> WorkoutConfig:
    if isinstance(data, WorkoutConfig):
        return data
    try:
        return WorkoutConfig.model_validate(dict(data))
    except ValidationError as exc:
        _LOGGER.debug("Rejected workout config %r: %s", dict(data), exc)
        raise InvalidConfigError(str(exc)) from exc


def coerce_update(
    update: WorkoutConfigUpdate | Mapping[str, Any] | None = None,
    **fields: Any,
) -> WorkoutConfigUpdate:
    match update:
        case None:
            payload: dict[str, Any] = {}
        case WorkoutConfigUpdate():
            payload = update.model_dump(exclude_none=True)
        case Mapping():
            payload = dict(update)
        case _:
            raise InvalidConfigError("update must be a WorkoutConfigUpdate or a mapping")
    payload.update(fields)
    try:
        return WorkoutConfigUpdate.model_validate(payload)
    except ValidationError as exc:
        raise InvalidConfigError(str(exc)) from exc
