from __future__ import annotations

import threading

import pytest

from promptgate.interaction.orchestrator import InteractionOrchestrator
from promptgate.interaction.types import InteractionOption, InteractionResponse, InteractionType
from promptgate.tools import InteractionTools, coerce_option


class _AnsweringChannel:
    channel_name = "fake"

    def __init__(self, answer):
        self._answer = answer
        self.requests = []
        self.progress = []
        self.ended = []
        self.rendered = threading.Event()

    def start(self):
        return

    def close(self):
        return

    def render(self, request, cancel):
        self.requests.append(request)
        self.rendered.set()
        return self._answer(request)

    def report_progress(self, operation_id, current, total, status):
        self.progress.append((operation_id, current, total, status))

    def end_progress(self, operation_id):
        self.ended.append(operation_id)


def _tools(answer):
    channel = _AnsweringChannel(answer)
    return InteractionTools(InteractionOrchestrator(channel)), channel


def _cancel(request):
    return InteractionResponse.cancelled_response()


def test_coerce_option_accepts_common_shapes():
    assert coerce_option("red") == InteractionOption("red", "red")
    assert coerce_option(("Red", "r")) == InteractionOption("Red", "r")
    assert coerce_option({"label": "Red", "value": "r", "is_default": True}).is_default is True
    with pytest.raises(ValueError):
        coerce_option(("only-label",))


def test_confirm_projects_yes_no_and_cancel():
    yes, _ = _tools(lambda request: InteractionResponse.succeeded(selected_values=["yes"]))
    no, _ = _tools(lambda request: InteractionResponse.succeeded(selected_values=["no"]))
    gone, _ = _tools(_cancel)

    assert yes.confirm("Deploy?") == "yes"
    assert no.confirm("Deploy?") == "no"
    assert gone.confirm("Deploy?") == "cancelled"


def test_choose_option_returns_value_custom_or_cancelled():
    picked, channel = _tools(lambda request: InteractionResponse.succeeded(selected_values=["b"]))
    typed, _ = _tools(lambda request: InteractionResponse.succeeded(custom_input="teal", text_value="teal"))
    gone, _ = _tools(_cancel)

    assert picked.choose_option("Pick", [("A", "a"), ("B", "b")]) == "b"
    assert channel.requests[0].type is InteractionType.SINGLE_CHOICE
    assert typed.choose_option("Pick", ["a"], allow_custom_input=True) == "custom:teal"
    assert gone.choose_option("Pick", ["a"]) == "cancelled"


def test_choose_multiple_returns_list_and_empty_on_cancel():
    tools, channel = _tools(lambda request: InteractionResponse.succeeded(selected_values=["a", "c"]))
    gone, _ = _tools(_cancel)

    assert tools.choose_multiple("Pick", ["a", "b", "c"], min_selections=1, max_selections=2) == ["a", "c"]
    assert channel.requests[0].max_selections == 2
    assert gone.choose_multiple("Pick", ["a"]) == []


def test_ask_text_and_choose_with_custom_text():
    tools, channel = _tools(lambda request: InteractionResponse.succeeded(text_value="Ada"))
    gone, _ = _tools(_cancel)
    picked, picked_channel = _tools(lambda request: InteractionResponse.succeeded(selected_values=["blue"]))

    assert tools.ask_text("Name?", placeholder="Full name") == "Ada"
    assert channel.requests[0].custom_input_placeholder == "Full name"
    assert gone.ask_text("Name?") == ""
    assert picked.choose_with_custom_text("Colour?", ["blue"]) == "blue"
    assert picked_channel.requests[0].type is InteractionType.CHOICE_WITH_TEXT


def test_notify_without_waiting_returns_immediately():
    release = threading.Event()

    def slow(request):
        release.wait(2.0)
        return InteractionResponse.succeeded()

    tools, channel = _tools(slow)

    assert tools.notify("Build finished") == "Notification sent."
    assert channel.rendered.wait(2.0)
    release.set()
    tools.close(grace=2.0)


def test_notify_waiting_reports_outcome():
    tools, _ = _tools(lambda request: InteractionResponse.succeeded())
    gone, _ = _tools(_cancel)

    assert tools.notify("Read me", wait_confirmation=True) == "Notification acknowledged."
    assert gone.notify("Read me", wait_confirmation=True) == "Notification dismissed."


def test_report_progress_reuses_surface_per_name():
    tools, channel = _tools(_cancel)

    tools.report_progress("upload", 1, 4, "Uploading")
    tools.report_progress("upload", 2, 4, "Uploading")
    tools.report_progress("index", 1, 2)
    done = tools.report_progress("upload", 4, 4, "Uploaded", done=True)

    upload_ids = {item[0] for item in channel.progress if item[3].startswith("Upload")}
    assert len(upload_ids) == 1
    assert done == "Progress for 'upload' completed."
    assert channel.ended == list(upload_ids)
    assert tools.report_progress("ghost", 1, 1, done=True) == "No progress reported for 'ghost'."

    tools.close()
    assert len(channel.ended) == 2
