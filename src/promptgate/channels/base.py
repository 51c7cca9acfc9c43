"""Render channel protocol: the one contract every human-facing surface implements."""

from __future__ import annotations

from typing import Protocol

from promptgate.interaction.cancel import CancelToken
from promptgate.interaction.errors import (
    ChannelConfigurationError,
    ChannelFailure,
    InteractionCancelled,
)
from promptgate.interaction.types import InteractionRequest, InteractionResponse

__all__ = [
    "ChannelConfigurationError",
    "ChannelFailure",
    "InteractionCancelled",
    "RenderChannel",
]


class RenderChannel(Protocol):
    """Minimal surface contract so the orchestrator stays channel-agnostic."""

    channel_name: str

    def start(self) -> None:
        """Acquire resources (threads, API sessions); raise ChannelConfigurationError if impossible."""

    def close(self) -> None:
        """Release resources; pending interactions resolve as cancelled."""

    def render(self, request: InteractionRequest, cancel: CancelToken) -> InteractionResponse:
        """Show `request` and block until answered, cancelled, or timed out."""

    def report_progress(self, operation_id: str, current: int, total: int, status: str) -> None:
        """Best-effort progress update; never raises."""

    def end_progress(self, operation_id: str) -> None:
        """Mark the operation's progress surface finished; idempotent."""
