"""Error taxonomy for interactions and render channels."""

from __future__ import annotations


class InteractionCancelled(Exception):
    """The human or the caller abandoned the interaction, or its deadline passed."""

    def __init__(self, message: str = "interaction cancelled", *, timed_out: bool = False) -> None:
        super().__init__(message)
        self.timed_out = bool(timed_out)


class ChannelFailure(RuntimeError):
    """A render surface or its transport failed; downgraded to a cancelled response."""


class ChannelConfigurationError(RuntimeError):
    """A channel cannot start (missing credentials, unreachable API, no UI)."""
