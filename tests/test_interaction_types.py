from __future__ import annotations

import pytest

from promptgate.interaction.types import (
    InteractionOption,
    InteractionRequest,
    InteractionResponse,
    InteractionType,
    InvalidInteractionRequest,
    ask_text,
    choose,
    choose_many,
    confirm,
    notify,
    require_every_type,
)


def _options():
    return [
        InteractionOption(label="Alpha", value="a"),
        InteractionOption(label="Beta", value="b", is_default=True),
    ]


def test_request_freezes_options_and_coerces_type():
    request = InteractionRequest(message="pick", type="single_choice", options=_options())

    assert isinstance(request.options, tuple)
    assert request.type is InteractionType.SINGLE_CHOICE
    with pytest.raises(Exception):
        request.message = "changed"  # type: ignore[misc]


def test_choice_with_text_always_allows_custom_input():
    request = InteractionRequest(message="pick", type=InteractionType.CHOICE_WITH_TEXT, options=_options())

    assert request.allow_custom_input is True
    assert request.accepts_free_text is True


@pytest.mark.parametrize(
    "kwargs",
    [
        {"type": InteractionType.SINGLE_CHOICE},
        {"type": InteractionType.MULTI_CHOICE, "options": _options(), "min_selections": 2, "max_selections": 1},
        {"type": InteractionType.MULTI_CHOICE, "options": _options(), "min_selections": -1},
        {"type": InteractionType.MULTI_CHOICE, "options": _options(), "min_selections": 3, "max_selections": 3},
        {"type": InteractionType.NOTIFY, "timeout": 0},
        {
            "type": InteractionType.SINGLE_CHOICE,
            "options": [InteractionOption("A", "x"), InteractionOption("B", "x")],
        },
    ],
)
def test_validate_rejects_broken_requests(kwargs):
    with pytest.raises(InvalidInteractionRequest):
        InteractionRequest(message="m", **kwargs).validate()


def test_confirm_without_options_falls_back_to_yes_no():
    request = InteractionRequest(message="sure?", type=InteractionType.CONFIRM).validate()

    values = [option.value for option in request.effective_options()]
    assert values == ["yes", "no"]
    assert request.default_values() == ("yes",)
    assert request.label_for("no") == "No"
    assert request.label_for("missing") == "missing"


def test_builders_produce_valid_requests():
    assert notify("hi").type is InteractionType.NOTIFY
    assert confirm("ok?").options[0].value == "yes"
    assert choose("pick", _options()).type is InteractionType.SINGLE_CHOICE
    assert choose("pick", _options(), allow_other=True).type is InteractionType.CHOICE_WITH_TEXT
    many = choose_many("pick", _options(), min_selections=1, max_selections=2)
    assert many.validate().max_selections == 2
    assert ask_text("name?", placeholder="Name").custom_input_placeholder == "Name"


def test_response_builders_hold_outcome_flags():
    ok = InteractionResponse.succeeded(selected_values=["a"], text_value="Alpha")
    assert ok.success is True and ok.cancelled is False
    assert ok.selected_values == ("a",)
    assert ok.first_value == "a"
    assert ok.outcome == "success"

    cancelled = InteractionResponse.cancelled_response()
    assert cancelled.cancelled is True and cancelled.success is False
    assert cancelled.outcome == "cancelled"

    expired = InteractionResponse.cancelled_response(timed_out=True)
    assert expired.cancelled is True and expired.timed_out is True
    assert expired.outcome == "timed_out"


def test_require_every_type_names_missing_entries():
    table = {kind: object() for kind in InteractionType if kind is not InteractionType.TEXT_INPUT}

    with pytest.raises(RuntimeError) as excinfo:
        require_every_type(table, "demo table")
    assert "text_input" in str(excinfo.value)
    require_every_type({kind: object() for kind in InteractionType}, "complete table")
