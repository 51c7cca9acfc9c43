from __future__ import annotations

import io
import os
import threading

from promptgate.channels.console import ConsoleChannel
from promptgate.interaction.cancel import CancelToken
from promptgate.interaction.orchestrator import InteractionOrchestrator
from promptgate.interaction.types import (
    InteractionOption,
    InteractionRequest,
    InteractionType,
    ask_text,
    confirm,
)


def _channel(answers: str):
    output = io.StringIO()
    channel = ConsoleChannel(
        input_stream=io.StringIO(answers),
        output_stream=output,
        is_tty=False,
        poll_interval=0.01,
    )
    return channel, output


def _colours(**overrides) -> InteractionRequest:
    values = dict(
        message="Favourite colour?",
        type=InteractionType.SINGLE_CHOICE,
        options=[
            InteractionOption("Red", "red"),
            InteractionOption("Blue", "blue", is_default=True),
        ],
        is_cancellable=True,
    )
    values.update(overrides)
    return InteractionRequest(**values)


def test_single_choice_by_number_and_reprompt_on_invalid():
    channel, output = _channel("9\n1\n")

    response = channel.render(_colours(), CancelToken())

    assert response.success is True
    assert response.selected_values == ("red",)
    assert response.text_value == "Red"
    text = output.getvalue()
    assert "Invalid option." in text
    assert "1. ( ) Red" in text
    assert "2. (*) Blue" in text
    assert "C. Cancel" in text


def test_empty_answer_accepts_default():
    channel, _ = _channel("\n")

    response = channel.render(_colours(), CancelToken())

    assert response.selected_values == ("blue",)


def test_cancel_key_cancels_when_allowed():
    channel, _ = _channel("c\n")

    response = channel.render(_colours(), CancelToken())

    assert response.cancelled is True


def test_other_expands_to_custom_text():
    channel, output = _channel("o\nteal\n")
    request = _colours(type=InteractionType.CHOICE_WITH_TEXT, custom_input_placeholder="Colour name")

    response = channel.render(request, CancelToken())

    assert response.custom_input == "teal"
    assert response.text_value == "teal"
    assert response.selected_values == ()
    assert "O. [Other] Colour name" in output.getvalue()


def test_confirm_accepts_words_and_numbers():
    by_word, _ = _channel("no\n")
    by_number, _ = _channel("1\n")

    assert by_word.render(confirm("Deploy?"), CancelToken()).selected_values == ("no",)
    assert by_number.render(confirm("Deploy?"), CancelToken()).selected_values == ("yes",)


def test_multi_choice_enforces_bounds():
    channel, output = _channel("1,2,3\n3 1\n")
    request = InteractionRequest(
        message="Toppings?",
        type=InteractionType.MULTI_CHOICE,
        options=[
            InteractionOption("Cheese", "cheese"),
            InteractionOption("Ham", "ham"),
            InteractionOption("Olives", "olives"),
        ],
        min_selections=1,
        max_selections=2,
    )

    response = channel.render(request, CancelToken())

    assert response.selected_values == ("olives", "cheese")
    assert "Select 1 to 2" in output.getvalue()
    assert "[ ] Cheese" in output.getvalue()


def test_text_input_and_empty_cancel():
    answered, _ = _channel("Ada Lovelace\n")
    skipped, _ = _channel("\n")

    assert answered.render(ask_text("Name?"), CancelToken()).text_value == "Ada Lovelace"
    assert skipped.render(ask_text("Name?", is_cancellable=True), CancelToken()).cancelled is True


def test_notify_prints_without_reading():
    channel, output = _channel("")

    response = channel.render(InteractionRequest(message="Build done", title="CI"), CancelToken())

    assert response.success is True
    assert "== CI ==" in output.getvalue()
    assert "Build done" in output.getvalue()


def test_closed_input_becomes_cancelled_response():
    channel, _ = _channel("")

    response = InteractionOrchestrator(channel).interact(confirm("Deploy?"))

    assert response.cancelled is True


def test_timeout_while_waiting_for_a_line():
    read_fd, write_fd = os.pipe()
    reader = os.fdopen(read_fd, "r")
    try:
        channel = ConsoleChannel(
            input_stream=reader,
            output_stream=io.StringIO(),
            is_tty=False,
            poll_interval=0.01,
        )
        request = InteractionRequest(message="Anyone?", type=InteractionType.CONFIRM, timeout=0.1)

        response = InteractionOrchestrator(channel).interact(request)

        assert response.cancelled is True
        assert response.timed_out is True
    finally:
        os.close(write_fd)


def test_progress_lines_without_ansi():
    channel, output = _channel("")

    channel.report_progress("op", 4, 10, "Copying")
    channel.end_progress("op")
    channel.end_progress("op")

    assert output.getvalue() == "Copying: [████░░░░░░] 40% (4/10)\n"


def test_concurrent_renders_share_one_reader():
    channel, _ = _channel("1\n2\n")
    results = []

    def ask() -> None:
        results.append(channel.render(_colours(is_cancellable=False), CancelToken()).first_value)

    threads = [threading.Thread(target=ask) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(2.0)

    assert sorted(results) == ["blue", "red"]
