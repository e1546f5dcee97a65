from __future__ import annotations

import asyncio
import logging
from typing import Callable, Protocol

from .logging_utils import log_exception

_LOGGER = logging.getLogger("tabata.scheduler")


class PeriodicSource(Protocol):
    """Owned periodic trigger; ``cancel`` must be idempotent."""

    @property
    def active(self) -> bool: ...

    def start(self) -> None: ...

    def cancel(self) -> None: ...


PeriodicFactory = Callable[[float, Callable[[], None], str], PeriodicSource]


class RepeatingTask:
    """Call ``callback`` every ``interval`` seconds on the running event loop.

    Deadlines are anchored to the moment ``start`` runs (``start + n * interval``), so a
    slow callback does not push later firings back. A task is single-use: once
    cancelled it never fires again, and a new session needs a new instance.
    """

    def __init__(self, interval: float, callback: Callable[[], None], *, name: str) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval!r}")
        self._interval = interval
        self._callback = callback
        self._name = name
        self._task: asyncio.Task[None] | None = None
        self._cancelled = False
        self.fired = 0

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def active(self) -> bool:
        return self._task is not None and not self._cancelled and not self._task.done()

    def start(self) -> None:
        if self._cancelled:
            raise RuntimeError(f"{self._name} was cancelled and cannot be restarted")
        if self._task is not None:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self._name)

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
        _LOGGER.debug("%s cancelled after %d firings", self._name, self.fired)

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time()
        while not self._cancelled:
            deadline += self._interval
            await asyncio.sleep(max(0.0, deadline - loop.time()))
            if self._cancelled:
                return
            self.fired += 1
            try:
                self._callback()
            except Exception as exc:
                _LOGGER.error("%s callback failed: %s", self._name, exc, exc_info=True)
                log_exception(self._name, exc)
                self._cancelled = True
                return


def repeating_task(interval: float, callback: Callable[[], None], name: str) -> RepeatingTask:
    return RepeatingTask(interval, callback, name=name)
