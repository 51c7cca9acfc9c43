"""Transport-neutral inbound events, outbound messages, and sender commands."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple, Union


@dataclass(frozen=True)
class ActionButton:
    label: str
    token: str


ButtonRows = Tuple[Tuple[ActionButton, ...], ...]


@dataclass(frozen=True)
class OutboundMessage:
    """One outward message; transports decide markup and escaping."""

    title: str = ""
    body: str = ""
    footer: str = ""
    buttons: ButtonRows = field(default_factory=tuple)


@dataclass(frozen=True)
class ActionEvent:
    """A pressed action carrying a `correlationId:action[:value]` token."""

    event_id: int
    token: str
    action_id: str = ""
    message_id: str = ""


@dataclass(frozen=True)
class TextEvent:
    """A bare free-text message from the human."""

    event_id: int
    text: str
    message_id: str = ""


@dataclass(frozen=True)
class SkippedEvent:
    """An update that only advances the poll offset (other chats, unsupported kinds)."""

    event_id: int
    reason: str = ""


InboundEvent = Union[ActionEvent, TextEvent, SkippedEvent]


@dataclass(frozen=True)
class SendPrompt:
    correlation_id: str
    message: OutboundMessage


@dataclass(frozen=True)
class SendNotice:
    """A message nobody answers; it is never registered for correlation."""

    message: OutboundMessage


@dataclass(frozen=True)
class EditPrompt:
    correlation_id: str
    message: OutboundMessage
    final: bool = False


@dataclass(frozen=True)
class AnswerAction:
    action_id: str
    text: str = ""


@dataclass(frozen=True)
class ReportProgress:
    operation_id: str
    current: int
    total: int
    status: str


@dataclass(frozen=True)
class EndProgress:
    operation_id: str


OutboundCommand = Union[SendPrompt, SendNotice, EditPrompt, AnswerAction, ReportProgress, EndProgress]
