"""Typed request/response contracts shared by the orchestrator and every channel."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Mapping, Optional, Sequence, Tuple

DEFAULT_TITLE = "System"
DEFAULT_PLACEHOLDER = "Type here..."


class InteractionType(str, Enum):
    """Closed set of decisions a human can be asked for."""

    NOTIFY = "notify"
    CONFIRM = "confirm"
    SINGLE_CHOICE = "single_choice"
    MULTI_CHOICE = "multi_choice"
    TEXT_INPUT = "text_input"
    CHOICE_WITH_TEXT = "choice_with_text"

    @property
    def requires_options(self) -> bool:
        return self in _OPTION_TYPES


_OPTION_TYPES = frozenset(
    {
        InteractionType.SINGLE_CHOICE,
        InteractionType.MULTI_CHOICE,
        InteractionType.CHOICE_WITH_TEXT,
    }
)


class InvalidInteractionRequest(ValueError):
    """Raised when a request violates its own invariants."""


@dataclass(frozen=True)
class InteractionOption:
    """One selectable option; `value` is what comes back on selection."""

    label: str
    value: str
    is_default: bool = False
    description: str = ""


@dataclass(frozen=True)
class InteractionRequest:
    """A single decision request. Never mutated once handed to the orchestrator."""

    message: str
    type: InteractionType = InteractionType.NOTIFY
    title: str = DEFAULT_TITLE
    options: Tuple[InteractionOption, ...] = ()
    timeout: Optional[float] = None
    allow_custom_input: bool = False
    custom_input_placeholder: str = DEFAULT_PLACEHOLDER
    is_cancellable: bool = False
    min_selections: int = 0
    max_selections: int = 1
    # Only read for NOTIFY: false means show the notice and return without an acknowledgement.
    wait_confirmation: bool = True

    def __post_init__(self) -> None:
        # Callers commonly pass lists; freeze them so the request stays immutable.
        if not isinstance(self.options, tuple):
            object.__setattr__(self, "options", tuple(self.options or ()))
        if not isinstance(self.type, InteractionType):
            object.__setattr__(self, "type", InteractionType(str(self.type)))
        if self.type == InteractionType.CHOICE_WITH_TEXT and not self.allow_custom_input:
            object.__setattr__(self, "allow_custom_input", True)

    def validate(self) -> "InteractionRequest":
        if self.type.requires_options and not self.options:
            raise InvalidInteractionRequest(
                "{0} requests need at least one option".format(self.type.value)
            )
        if self.min_selections < 0:
            raise InvalidInteractionRequest("min_selections must not be negative")
        if self.min_selections > self.max_selections:
            raise InvalidInteractionRequest(
                "min_selections ({0}) exceeds max_selections ({1})".format(
                    self.min_selections,
                    self.max_selections,
                )
            )
        if self.type == InteractionType.MULTI_CHOICE and self.min_selections > len(self.options):
            raise InvalidInteractionRequest("min_selections exceeds the number of options")
        if self.timeout is not None and self.timeout <= 0:
            raise InvalidInteractionRequest("timeout must be positive when set")
        values = [option.value for option in self.options]
        if len(set(values)) != len(values):
            raise InvalidInteractionRequest("option values must be unique")
        return self

    @property
    def accepts_free_text(self) -> bool:
        return self.type == InteractionType.TEXT_INPUT or self.allow_custom_input

    def effective_options(self) -> Tuple[InteractionOption, ...]:
        """Options to render; confirmations without options fall back to Yes/No."""

        if self.type == InteractionType.CONFIRM and not self.options:
            return _YES_NO
        return self.options

    def default_values(self) -> Tuple[str, ...]:
        return tuple(option.value for option in self.effective_options() if option.is_default)

    def label_for(self, value: str) -> str:
        for option in self.effective_options():
            if option.value == value:
                return option.label
        return value

    def with_timeout(self, timeout: Optional[float]) -> "InteractionRequest":
        return replace(self, timeout=timeout)


_YES_NO = (
    InteractionOption(label="Yes", value="yes", is_default=True),
    InteractionOption(label="No", value="no"),
)


@dataclass(frozen=True)
class InteractionResponse:
    """Normalized outcome. Exactly one of success/cancelled; timed_out implies cancelled."""

    success: bool = False
    cancelled: bool = False
    timed_out: bool = False
    text_value: Optional[str] = None
    selected_values: Tuple[str, ...] = field(default_factory=tuple)
    custom_input: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.selected_values, tuple):
            object.__setattr__(self, "selected_values", tuple(self.selected_values or ()))

    @classmethod
    def succeeded(
        cls,
        *,
        selected_values: Sequence[str] = (),
        text_value: Optional[str] = None,
        custom_input: Optional[str] = None,
    ) -> "InteractionResponse":
        return cls(
            success=True,
            selected_values=tuple(selected_values),
            text_value=text_value,
            custom_input=custom_input,
        )

    @classmethod
    def cancelled_response(cls, *, timed_out: bool = False) -> "InteractionResponse":
        return cls(success=False, cancelled=True, timed_out=bool(timed_out))

    @property
    def outcome(self) -> str:
        if self.timed_out:
            return "timed_out"
        if self.cancelled:
            return "cancelled"
        return "success" if self.success else "unresolved"

    @property
    def first_value(self) -> Optional[str]:
        return self.selected_values[0] if self.selected_values else None


def notify(message: str, *, title: str = DEFAULT_TITLE) -> InteractionRequest:
    return InteractionRequest(message=message, title=title, type=InteractionType.NOTIFY)


def confirm(
    message: str,
    *,
    title: str = DEFAULT_TITLE,
    is_cancellable: bool = False,
) -> InteractionRequest:
    return InteractionRequest(
        message=message,
        title=title,
        type=InteractionType.CONFIRM,
        options=_YES_NO,
        is_cancellable=is_cancellable,
    )


def choose(
    message: str,
    options: Iterable[InteractionOption],
    *,
    title: str = DEFAULT_TITLE,
    allow_other: bool = False,
    is_cancellable: bool = False,
) -> InteractionRequest:
    return InteractionRequest(
        message=message,
        title=title,
        type=InteractionType.CHOICE_WITH_TEXT if allow_other else InteractionType.SINGLE_CHOICE,
        options=tuple(options),
        allow_custom_input=allow_other,
        is_cancellable=is_cancellable,
    )


def choose_many(
    message: str,
    options: Iterable[InteractionOption],
    *,
    title: str = DEFAULT_TITLE,
    min_selections: int = 0,
    max_selections: int = 1,
    is_cancellable: bool = False,
) -> InteractionRequest:
    return InteractionRequest(
        message=message,
        title=title,
        type=InteractionType.MULTI_CHOICE,
        options=tuple(options),
        min_selections=min_selections,
        max_selections=max_selections,
        is_cancellable=is_cancellable,
    )


def ask_text(
    message: str,
    *,
    title: str = DEFAULT_TITLE,
    placeholder: str = DEFAULT_PLACEHOLDER,
    is_cancellable: bool = False,
) -> InteractionRequest:
    return InteractionRequest(
        message=message,
        title=title,
        type=InteractionType.TEXT_INPUT,
        custom_input_placeholder=placeholder,
        is_cancellable=is_cancellable,
    )


def require_every_type(table: Mapping[InteractionType, object], owner: str) -> None:
    """Fail at import time when a per-type dispatch table misses a type."""

    missing = [item.value for item in InteractionType if item not in table]
    if missing:
        raise RuntimeError(
            "{0} has no handler for interaction type(s): {1}".format(owner, ", ".join(missing))
        )
