"""Correlation engine: matches out-of-band answers back to pending requests.

The engine is bookkeeping only. Every method returns the outbound commands the
owning channel must hand to its sender thread; nothing here performs I/O.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Tuple

from promptgate.correlation.messages import (
    ActionEvent,
    AnswerAction,
    EditPrompt,
    InboundEvent,
    OutboundCommand,
    OutboundMessage,
    SendPrompt,
    SkippedEvent,
    TextEvent,
)
from promptgate.correlation.pending import PendingRequest, PendingState, PendingTable
from promptgate.correlation.tokens import ACTION_CANCEL, decode_token
from promptgate.correlation.variants import (
    AwaitCustomText,
    Outcome,
    Refresh,
    Reject,
    Resolve,
    cancel_button,
    variant_for,
)
from promptgate.interaction.types import InteractionRequest, InteractionResponse
from promptgate.kernel.types import EventSink

EXPIRED_NOTICE = "This request has expired."
CANCELLED_NOTE = "✖ Cancelled"
EXPIRED_NOTE = "⌛ Expired"


class CorrelationEngine:
    def __init__(
        self,
        *,
        event_sink: Optional[EventSink] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        self.table = PendingTable(id_factory)
        self._event_sink = event_sink

    @property
    def pending_count(self) -> int:
        return len(self.table)

    def register(self, request: InteractionRequest) -> Tuple[PendingRequest, List[OutboundCommand]]:
        entry = self.table.register(request)
        self._emit(
            "correlation.registered",
            {"correlation_id": entry.correlation_id, "type": request.type.value},
        )
        return entry, [SendPrompt(entry.correlation_id, self.prompt_message(entry))]

    def dispatch(self, event: InboundEvent) -> List[OutboundCommand]:
        if isinstance(event, ActionEvent):
            return self._dispatch_action(event)
        if isinstance(event, TextEvent):
            return self._dispatch_text(event)
        if isinstance(event, SkippedEvent):
            self._emit("correlation.ignored", {"reason": event.reason or "skipped"})
        return []

    def cancel(self, correlation_id: str, *, timed_out: bool = False) -> List[OutboundCommand]:
        """Resolve an entry cancelled; a no-op when an answer already won."""

        response = InteractionResponse.cancelled_response(timed_out=timed_out)
        entry = self.table.resolve(correlation_id, response)
        if entry is None:
            return []
        self._emit(
            "correlation.timed_out" if timed_out else "correlation.cancelled",
            {"correlation_id": correlation_id},
        )
        note = EXPIRED_NOTE if timed_out else CANCELLED_NOTE
        return [EditPrompt(correlation_id, self.inert_message(entry.request, note), final=True)]

    def fail(self, correlation_id: str, error: str) -> bool:
        entry = self.table.resolve(correlation_id, InteractionResponse.cancelled_response())
        if entry is None:
            return False
        self._emit("correlation.failed", {"correlation_id": correlation_id, "error": error})
        return True

    def cancel_all(self) -> List[OutboundCommand]:
        commands: List[OutboundCommand] = []
        for correlation_id in self.table.correlation_ids():
            commands.extend(self.cancel(correlation_id))
        return commands

    def prompt_message(self, entry: PendingRequest) -> OutboundMessage:
        request = entry.request
        variant = variant_for(request.type)
        if entry.state == PendingState.AWAITING_CUSTOM_TEXT:
            return OutboundMessage(
                title=request.title,
                body=request.message,
                footer="✏️ {0} Send your answer as a message.".format(
                    request.custom_input_placeholder
                ).strip(),
                buttons=((cancel_button(entry.correlation_id),),),
            )
        return OutboundMessage(
            title=request.title,
            body=request.message,
            footer=variant.hint(request, entry.accumulator),
            buttons=variant.action_rows(request, entry.correlation_id, entry.accumulator),
        )

    @staticmethod
    def notice_message(request: InteractionRequest) -> OutboundMessage:
        return OutboundMessage(title=request.title, body=request.message)

    @staticmethod
    def inert_message(request: InteractionRequest, note: str) -> OutboundMessage:
        return OutboundMessage(title=request.title, body=request.message, footer=note)

    @staticmethod
    def answered_note(request: InteractionRequest, response: InteractionResponse) -> str:
        if response.cancelled:
            return CANCELLED_NOTE
        if response.custom_input is not None:
            return "✔ {0}".format(response.custom_input)
        if response.text_value is not None:
            return "✔ {0}".format(response.text_value)
        if response.selected_values:
            labels = [request.label_for(value) for value in response.selected_values]
            return "✔ {0}".format(", ".join(labels))
        return "✔ Acknowledged"

    def _dispatch_action(self, event: ActionEvent) -> List[OutboundCommand]:
        token = decode_token(event.token)
        if token is None:
            self._emit("correlation.stale", {"reason": "malformed_action", "raw": event.token})
            return self._answer(event, EXPIRED_NOTICE)

        with self.table.lock:
            entry = self.table.get(token.correlation_id)
            if entry is None:
                self._emit(
                    "correlation.stale",
                    {"reason": "unknown_id", "correlation_id": token.correlation_id},
                )
                return self._answer(event, EXPIRED_NOTICE)

            if entry.state == PendingState.AWAITING_CUSTOM_TEXT:
                if token.action == ACTION_CANCEL:
                    outcome: Outcome = Resolve(InteractionResponse.cancelled_response())
                else:
                    outcome = Reject("Send your answer as a text message.")
            else:
                outcome = variant_for(entry.request.type).handle_action(
                    entry.request,
                    token.action,
                    token.value,
                    entry.accumulator,
                )
            commands = self._apply(entry, outcome)

        if isinstance(outcome, Reject):
            return commands + self._answer(event, outcome.notice)
        return commands + self._answer(event, "")

    def _dispatch_text(self, event: TextEvent) -> List[OutboundCommand]:
        text = str(event.text or "").strip()
        if not text or text.startswith("/"):
            self._emit("correlation.ignored", {"reason": "not_an_answer"})
            return []

        with self.table.lock:
            entry = self.table.free_text_candidate()
            if entry is None:
                self._emit("correlation.stale", {"reason": "no_text_candidate"})
                return []
            outcome = variant_for(entry.request.type).handle_text(entry.request, text)
            return self._apply(entry, outcome)

    def _apply(self, entry: PendingRequest, outcome: Outcome) -> List[OutboundCommand]:
        correlation_id = entry.correlation_id
        if isinstance(outcome, Resolve):
            if self.table.resolve(correlation_id, outcome.response) is None:
                return []
            self._emit(
                "correlation.cancelled" if outcome.response.cancelled else "correlation.resolved",
                {"correlation_id": correlation_id},
            )
            note = self.answered_note(entry.request, outcome.response)
            return [EditPrompt(correlation_id, self.inert_message(entry.request, note), final=True)]
        if isinstance(outcome, Refresh):
            entry.accumulator = tuple(outcome.accumulator)
            return [EditPrompt(correlation_id, self.prompt_message(entry))]
        if isinstance(outcome, AwaitCustomText):
            entry.state = PendingState.AWAITING_CUSTOM_TEXT
            return [EditPrompt(correlation_id, self.prompt_message(entry))]
        self._emit(
            "correlation.rejected",
            {"correlation_id": correlation_id, "notice": outcome.notice},
        )
        return []

    @staticmethod
    def _answer(event: ActionEvent, text: str) -> List[OutboundCommand]:
        if not event.action_id:
            return []
        return [AnswerAction(event.action_id, text)]

    def _emit(self, event_type: str, payload: Dict[str, Any]) -> None:
        if self._event_sink is None:
            return
        try:
            self._event_sink(event_type, dict(payload))
        except Exception:
            return
