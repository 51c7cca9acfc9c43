"""Interaction model, cancellation primitives, and the orchestrator."""

from .cancel import CancelReason, CancelScope, CancelToken
from .errors import ChannelConfigurationError, ChannelFailure, InteractionCancelled
from .resolution import ResolutionSlot
from .types import (
    InteractionOption,
    InteractionRequest,
    InteractionResponse,
    InteractionType,
    InvalidInteractionRequest,
)
from .orchestrator import InteractionOrchestrator, ProgressSink

__all__ = [
    "CancelReason",
    "CancelScope",
    "CancelToken",
    "ChannelConfigurationError",
    "ChannelFailure",
    "InteractionCancelled",
    "InteractionOption",
    "InteractionOrchestrator",
    "InteractionRequest",
    "InteractionResponse",
    "InteractionType",
    "InvalidInteractionRequest",
    "ProgressSink",
    "ResolutionSlot",
]
