"""Render channels: console, dialog, and chat-bot surfaces."""

from promptgate.channels.base import (
    ChannelConfigurationError,
    ChannelFailure,
    InteractionCancelled,
    RenderChannel,
)

__all__ = [
    "ChannelConfigurationError",
    "ChannelFailure",
    "InteractionCancelled",
    "RenderChannel",
]
