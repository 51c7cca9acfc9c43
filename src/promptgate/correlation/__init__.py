"""Correlation of out-of-band answers with pending interaction requests."""

from .engine import CorrelationEngine
from .messages import (
    ActionButton,
    ActionEvent,
    AnswerAction,
    EditPrompt,
    EndProgress,
    InboundEvent,
    OutboundCommand,
    OutboundMessage,
    ReportProgress,
    SendNotice,
    SendPrompt,
    SkippedEvent,
    TextEvent,
)
from .pending import PendingRequest, PendingState, PendingTable
from .tokens import ActionToken, decode_token, encode_token
from .variants import VARIANTS, InteractionVariant

__all__ = [
    "ActionButton",
    "ActionEvent",
    "ActionToken",
    "AnswerAction",
    "CorrelationEngine",
    "EditPrompt",
    "EndProgress",
    "InboundEvent",
    "InteractionVariant",
    "OutboundCommand",
    "OutboundMessage",
    "PendingRequest",
    "PendingState",
    "PendingTable",
    "ReportProgress",
    "SendNotice",
    "SendPrompt",
    "SkippedEvent",
    "TextEvent",
    "VARIANTS",
    "decode_token",
    "encode_token",
]
