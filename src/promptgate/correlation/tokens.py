"""Action token codec: `correlationId:action[:value]`.

This encoding is the only bit-exact contract with the remote surface. Tokens
from an earlier process run decode fine but reference unknown ids, so they are
treated as stale rather than mis-dispatched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

ACTION_SELECT = "select"
ACTION_CONFIRM = "confirm"
ACTION_MULTI = "multi"
ACTION_DONE = "done"
ACTION_CUSTOM = "custom"
ACTION_CANCEL = "cancel"

KNOWN_ACTIONS = frozenset(
    {
        ACTION_SELECT,
        ACTION_CONFIRM,
        ACTION_MULTI,
        ACTION_DONE,
        ACTION_CUSTOM,
        ACTION_CANCEL,
    }
)

SEPARATOR = ":"


@dataclass(frozen=True)
class ActionToken:
    correlation_id: str
    action: str
    value: Optional[str] = None

    def encode(self) -> str:
        return encode_token(self.correlation_id, self.action, self.value)


def encode_token(correlation_id: str, action: str, value: Optional[str] = None) -> str:
    cid = str(correlation_id or "")
    if not cid or SEPARATOR in cid:
        raise ValueError("correlation id must be non-empty and free of ':'")
    if action not in KNOWN_ACTIONS:
        raise ValueError("unknown action: {0}".format(action))
    if value is None:
        return "{0}{1}{2}".format(cid, SEPARATOR, action)
    return "{0}{1}{2}{1}{3}".format(cid, SEPARATOR, action, value)


def decode_token(raw: object) -> Optional[ActionToken]:
    """Parse a token; returns None for anything malformed. Values may contain ':'."""

    text = str(raw or "").strip()
    if not text:
        return None
    parts = text.split(SEPARATOR, 2)
    if len(parts) < 2:
        return None
    correlation_id, action = parts[0].strip(), parts[1].strip()
    if not correlation_id or action not in KNOWN_ACTIONS:
        return None
    value = parts[2] if len(parts) > 2 else None
    return ActionToken(correlation_id=correlation_id, action=action, value=value)
