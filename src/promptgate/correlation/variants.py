"""Per-type behavior of a correlated prompt.

Each variant maps `(request, correlation id, accumulator)` to the action rows
shown with the prompt and `(request, action, value, accumulator)` to an
outcome. Variants are pure; the engine applies outcomes under the table lock.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

from promptgate.correlation.messages import ActionButton, ButtonRows
from promptgate.correlation.tokens import (
    ACTION_CANCEL,
    ACTION_CONFIRM,
    ACTION_CUSTOM,
    ACTION_DONE,
    ACTION_MULTI,
    ACTION_SELECT,
    encode_token,
)
from promptgate.interaction.types import (
    InteractionRequest,
    InteractionResponse,
    InteractionType,
    require_every_type,
)

NOTIFY_ACK_VALUE = "ok"

CANCEL_LABEL = "✖ Cancel"
CUSTOM_LABEL = "✏️ Other..."
OK_LABEL = "OK"


@dataclass(frozen=True)
class Resolve:
    response: InteractionResponse


@dataclass(frozen=True)
class Refresh:
    accumulator: Tuple[str, ...]


@dataclass(frozen=True)
class AwaitCustomText:
    pass


@dataclass(frozen=True)
class Reject:
    notice: str


Outcome = Union[Resolve, Refresh, AwaitCustomText, Reject]


def cancel_button(correlation_id: str) -> ActionButton:
    return ActionButton(CANCEL_LABEL, encode_token(correlation_id, ACTION_CANCEL))


class InteractionVariant:
    """Shared handling for cancel/custom; subclasses own their type-specific actions."""

    kind: InteractionType

    def action_rows(
        self,
        request: InteractionRequest,
        correlation_id: str,
        accumulator: Tuple[str, ...],
    ) -> ButtonRows:
        rows: List[Tuple[ActionButton, ...]] = list(
            self._option_rows(request, correlation_id, accumulator)
        )
        extra: List[ActionButton] = []
        if request.allow_custom_input:
            extra.append(ActionButton(CUSTOM_LABEL, encode_token(correlation_id, ACTION_CUSTOM)))
        if request.is_cancellable:
            extra.append(cancel_button(correlation_id))
        if extra:
            rows.append(tuple(extra))
        return tuple(rows)

    def hint(self, request: InteractionRequest, accumulator: Tuple[str, ...]) -> str:
        if request.allow_custom_input:
            return "Pick an option or choose Other to type your own answer."
        return ""

    def handle_action(
        self,
        request: InteractionRequest,
        action: str,
        value: Optional[str],
        accumulator: Tuple[str, ...],
    ) -> Outcome:
        if action == ACTION_CANCEL:
            if request.is_cancellable:
                return Resolve(InteractionResponse.cancelled_response())
            return Reject("This request cannot be cancelled.")
        if action == ACTION_CUSTOM:
            if request.allow_custom_input:
                return AwaitCustomText()
            return Reject("Free text is not accepted here.")
        return self._handle(request, action, value, accumulator)

    def handle_text(self, request: InteractionRequest, text: str) -> Outcome:
        if request.allow_custom_input:
            return Resolve(InteractionResponse.succeeded(custom_input=text, text_value=text))
        return Reject("Free text is not accepted here.")

    def _option_rows(
        self,
        request: InteractionRequest,
        correlation_id: str,
        accumulator: Tuple[str, ...],
    ) -> ButtonRows:
        return ()

    def _handle(
        self,
        request: InteractionRequest,
        action: str,
        value: Optional[str],
        accumulator: Tuple[str, ...],
    ) -> Outcome:
        return Reject("Unsupported action.")


def _known_value(request: InteractionRequest, value: Optional[str]) -> bool:
    return value is not None and any(
        option.value == value for option in request.effective_options()
    )


_UNKNOWN_OPTION = "That option is no longer available."


class NotifyVariant(InteractionVariant):
    kind = InteractionType.NOTIFY

    def _option_rows(self, request, correlation_id, accumulator):
        return ((ActionButton(OK_LABEL, encode_token(correlation_id, ACTION_CONFIRM, NOTIFY_ACK_VALUE)),),)

    def _handle(self, request, action, value, accumulator):
        if action == ACTION_CONFIRM and value == NOTIFY_ACK_VALUE:
            return Resolve(InteractionResponse.succeeded())
        return Reject(_UNKNOWN_OPTION)


class ConfirmVariant(InteractionVariant):
    kind = InteractionType.CONFIRM

    def _option_rows(self, request, correlation_id, accumulator):
        return (
            tuple(
                ActionButton(option.label, encode_token(correlation_id, ACTION_CONFIRM, option.value))
                for option in request.effective_options()
            ),
        )

    def _handle(self, request, action, value, accumulator):
        if action == ACTION_CONFIRM and _known_value(request, value):
            return Resolve(InteractionResponse.succeeded(selected_values=(str(value),)))
        return Reject(_UNKNOWN_OPTION)


class SingleChoiceVariant(InteractionVariant):
    kind = InteractionType.SINGLE_CHOICE

    def _option_rows(self, request, correlation_id, accumulator):
        return tuple(
            (ActionButton(option.label, encode_token(correlation_id, ACTION_SELECT, option.value)),)
            for option in request.options
        )

    def _handle(self, request, action, value, accumulator):
        if action == ACTION_SELECT and _known_value(request, value):
            return Resolve(InteractionResponse.succeeded(selected_values=(str(value),)))
        return Reject(_UNKNOWN_OPTION)


class ChoiceWithTextVariant(SingleChoiceVariant):
    kind = InteractionType.CHOICE_WITH_TEXT


class MultiChoiceVariant(InteractionVariant):
    kind = InteractionType.MULTI_CHOICE

    def _option_rows(self, request, correlation_id, accumulator):
        rows = [
            (
                ActionButton(
                    "{0} {1}".format("☑" if option.value in accumulator else "☐", option.label),
                    encode_token(correlation_id, ACTION_MULTI, option.value),
                ),
            )
            for option in request.options
        ]
        rows.append(
            (
                ActionButton(
                    "✔ Done ({0} selected)".format(len(accumulator)),
                    encode_token(correlation_id, ACTION_DONE),
                ),
            )
        )
        return tuple(rows)

    def hint(self, request, accumulator):
        low, high = request.min_selections, request.max_selections
        if low == high:
            text = "Select exactly {0}.".format(low)
        elif low <= 0:
            text = "Select up to {0}.".format(high)
        else:
            text = "Select between {0} and {1}.".format(low, high)
        base = super().hint(request, accumulator)
        return "{0} {1}".format(text, base).strip()

    def _handle(self, request, action, value, accumulator):
        if action == ACTION_MULTI:
            if not _known_value(request, value):
                return Reject(_UNKNOWN_OPTION)
            picked = str(value)
            if picked in accumulator:
                return Refresh(tuple(item for item in accumulator if item != picked))
            if len(accumulator) >= request.max_selections:
                return Reject("You can select at most {0}.".format(request.max_selections))
            return Refresh(accumulator + (picked,))
        if action == ACTION_DONE:
            if len(accumulator) < request.min_selections:
                return Reject("Select at least {0}.".format(request.min_selections))
            return Resolve(InteractionResponse.succeeded(selected_values=accumulator))
        return Reject(_UNKNOWN_OPTION)


class TextInputVariant(InteractionVariant):
    kind = InteractionType.TEXT_INPUT

    def action_rows(self, request, correlation_id, accumulator):
        if request.is_cancellable:
            return ((cancel_button(correlation_id),),)
        return ()

    def hint(self, request, accumulator):
        return "Reply with a message. {0}".format(request.custom_input_placeholder).strip()

    def handle_text(self, request, text):
        return Resolve(InteractionResponse.succeeded(text_value=text))


VARIANTS: Dict[InteractionType, InteractionVariant] = {
    variant.kind: variant
    for variant in (
        NotifyVariant(),
        ConfirmVariant(),
        SingleChoiceVariant(),
        MultiChoiceVariant(),
        TextInputVariant(),
        ChoiceWithTextVariant(),
    )
}

require_every_type(VARIANTS, "correlation variants")


def variant_for(kind: InteractionType) -> InteractionVariant:
    return VARIANTS[kind]
