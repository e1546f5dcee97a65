from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any

try:
    import uvloop as _uvloop
except ImportError:
    _uvloop = None

_LOGGER = logging.getLogger("tabata.loop")
uvloop: Any | None = None if sys.platform.startswith("win") else _uvloop


def install_uvloop_policy() -> bool:
    """Use uvloop for new event loops when the ``fast`` extra is installed."""
    if uvloop is None:
        _LOGGER.debug("uvloop not installed; keeping the default event loop")
        return False
    asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
    return True
