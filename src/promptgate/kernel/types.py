"""Small helpers shared across orchestrator, channels, and logging."""

from __future__ import annotations

import time
import uuid
from typing import Any, Callable, Dict


EventSink = Callable[[str, Dict[str, Any]], None]


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id(prefix: str) -> str:
    return "{0}_{1}".format(prefix, uuid.uuid4().hex)


def short_token(length: int = 8) -> str:
    return uuid.uuid4().hex[: max(4, int(length))]
