from __future__ import annotations

import itertools

from promptgate.correlation.engine import EXPIRED_NOTICE, CorrelationEngine
from promptgate.correlation.messages import (
    ActionEvent,
    AnswerAction,
    EditPrompt,
    SendPrompt,
    SkippedEvent,
    TextEvent,
)
from promptgate.correlation.pending import PendingState
from promptgate.interaction.types import (
    InteractionOption,
    InteractionRequest,
    InteractionType,
    ask_text,
    confirm,
)


def _engine(events=None) -> CorrelationEngine:
    counter = itertools.count(1)
    sink = None
    if events is not None:
        sink = lambda et, payload: events.append((et, payload))
    return CorrelationEngine(event_sink=sink, id_factory=lambda: "c{0:07d}".format(next(counter)))


_event_ids = itertools.count(100)


def _press(token: str, action_id: str = "q1") -> ActionEvent:
    return ActionEvent(event_id=next(_event_ids), token=token, action_id=action_id)


def _say(text: str) -> TextEvent:
    return TextEvent(event_id=next(_event_ids), text=text)


def _tokens(command: SendPrompt):
    return [button.token for row in command.message.buttons for button in row]


def _multi_request(**overrides) -> InteractionRequest:
    values = dict(
        message="Pick toppings",
        type=InteractionType.MULTI_CHOICE,
        options=[
            InteractionOption("Cheese", "cheese"),
            InteractionOption("Ham", "ham"),
            InteractionOption("Olives", "olives"),
        ],
        min_selections=1,
        max_selections=2,
    )
    values.update(overrides)
    return InteractionRequest(**values)


def test_register_sends_one_prompt_with_id_embedded_actions():
    engine = _engine()
    request = InteractionRequest(
        message="Colour?",
        type=InteractionType.SINGLE_CHOICE,
        options=[InteractionOption("Red", "red"), InteractionOption("Blue", "blue")],
        is_cancellable=True,
    )

    entry, commands = engine.register(request)

    assert len(commands) == 1 and isinstance(commands[0], SendPrompt)
    assert commands[0].correlation_id == entry.correlation_id
    assert _tokens(commands[0]) == ["c0000001:select:red", "c0000001:select:blue", "c0000001:cancel"]
    assert engine.pending_count == 1


def test_confirm_cancel_action_resolves_cancelled():
    engine = _engine()
    entry, _ = engine.register(confirm("Deploy?", is_cancellable=True))

    commands = engine.dispatch(_press("{0}:cancel".format(entry.correlation_id)))

    response = entry.slot.wait(0)
    assert response is not None
    assert response.cancelled is True
    assert response.timed_out is False
    assert engine.pending_count == 0
    edits = [command for command in commands if isinstance(command, EditPrompt)]
    assert edits and edits[0].final is True
    assert edits[0].message.buttons == ()
    assert AnswerAction("q1", "") in commands


def test_confirm_answer_no_is_success():
    engine = _engine()
    entry, _ = engine.register(confirm("Deploy?"))

    engine.dispatch(_press("{0}:confirm:no".format(entry.correlation_id)))

    response = entry.slot.wait(0)
    assert response.success is True
    assert response.selected_values == ("no",)


def test_custom_action_then_free_text_sets_custom_input_only():
    engine = _engine()
    request = InteractionRequest(
        message="Favourite colour?",
        type=InteractionType.CHOICE_WITH_TEXT,
        options=[InteractionOption("Blue", "blue")],
        allow_custom_input=True,
    )
    entry, _ = engine.register(request)

    commands = engine.dispatch(_press("{0}:custom".format(entry.correlation_id)))
    assert entry.state is PendingState.AWAITING_CUSTOM_TEXT
    prompt_edit = [command for command in commands if isinstance(command, EditPrompt)][0]
    assert prompt_edit.final is False
    assert [b.token for row in prompt_edit.message.buttons for b in row] == [
        "{0}:cancel".format(entry.correlation_id)
    ]

    engine.dispatch(_say("teal"))

    response = entry.slot.wait(0)
    assert response.success is True
    assert response.custom_input == "teal"
    assert response.text_value == "teal"
    assert response.selected_values == ()


def test_multi_choice_keeps_selection_order_and_finishes_on_done():
    engine = _engine()
    entry, _ = engine.register(_multi_request())
    cid = entry.correlation_id

    first = engine.dispatch(_press("{0}:multi:olives".format(cid)))
    engine.dispatch(_press("{0}:multi:cheese".format(cid)))
    assert entry.accumulator == ("olives", "cheese")
    refreshed = [command for command in first if isinstance(command, EditPrompt)][0]
    labels = [button.label for row in refreshed.message.buttons for button in row]
    assert "☑ Olives" in labels
    assert "✔ Done (1 selected)" in labels

    engine.dispatch(_press("{0}:done".format(cid)))

    response = entry.slot.wait(0)
    assert response.success is True
    assert response.selected_values == ("olives", "cheese")


def test_multi_choice_rejects_beyond_max_and_below_min():
    engine = _engine()
    entry, _ = engine.register(_multi_request())
    cid = entry.correlation_id

    early = engine.dispatch(_press("{0}:done".format(cid), action_id="q-early"))
    assert AnswerAction("q-early", "Select at least 1.") in early

    engine.dispatch(_press("{0}:multi:cheese".format(cid)))
    engine.dispatch(_press("{0}:multi:ham".format(cid)))
    over = engine.dispatch(_press("{0}:multi:olives".format(cid), action_id="q-over"))
    assert AnswerAction("q-over", "You can select at most 2.") in over
    assert entry.accumulator == ("cheese", "ham")

    engine.dispatch(_press("{0}:multi:cheese".format(cid)))
    assert entry.accumulator == ("ham",)
    assert entry.slot.resolved is False


def test_multi_choice_seeds_defaults():
    engine = _engine()
    request = _multi_request(
        options=[
            InteractionOption("Cheese", "cheese", is_default=True),
            InteractionOption("Ham", "ham"),
        ]
    )

    entry, _ = engine.register(request)

    assert entry.accumulator == ("cheese",)


def test_unknown_and_malformed_tokens_are_stale():
    events = []
    engine = _engine(events)
    entry, _ = engine.register(confirm("Deploy?"))

    unknown = engine.dispatch(_press("ffffffff:confirm:yes", action_id="q-unknown"))
    malformed = engine.dispatch(_press("garbage", action_id="q-bad"))

    assert unknown == [AnswerAction("q-unknown", EXPIRED_NOTICE)]
    assert malformed == [AnswerAction("q-bad", EXPIRED_NOTICE)]
    assert entry.slot.resolved is False
    assert [name for name, _ in events].count("correlation.stale") == 2


def test_late_action_after_cancel_is_stale_and_first_writer_wins():
    engine = _engine()
    entry, _ = engine.register(confirm("Deploy?"))
    cid = entry.correlation_id

    cancel_commands = engine.cancel(cid, timed_out=True)
    late = engine.dispatch(_press("{0}:confirm:yes".format(cid), action_id="q-late"))

    response = entry.slot.wait(0)
    assert response.cancelled is True and response.timed_out is True
    assert cancel_commands[0].message.footer == "⌛ Expired"
    assert late == [AnswerAction("q-late", EXPIRED_NOTICE)]
    assert engine.cancel(cid) == []


def test_answer_before_cancel_keeps_answer():
    engine = _engine()
    entry, _ = engine.register(confirm("Deploy?"))

    engine.dispatch(_press("{0}:confirm:yes".format(entry.correlation_id)))

    assert engine.cancel(entry.correlation_id) == []
    assert entry.slot.wait(0).success is True


def test_free_text_goes_to_custom_waiting_entry_first_then_oldest():
    engine = _engine()
    oldest, _ = engine.register(ask_text("Name?"))
    middle, _ = engine.register(ask_text("City?"))
    choice, _ = engine.register(
        InteractionRequest(
            message="Colour?",
            type=InteractionType.CHOICE_WITH_TEXT,
            options=[InteractionOption("Blue", "blue")],
        )
    )
    engine.dispatch(_press("{0}:custom".format(choice.correlation_id)))

    engine.dispatch(_say("green"))
    engine.dispatch(_say("Ada"))
    engine.dispatch(_say("Paris"))

    assert choice.slot.wait(0).custom_input == "green"
    assert oldest.slot.wait(0).text_value == "Ada"
    assert middle.slot.wait(0).text_value == "Paris"


def test_commands_and_empty_text_are_ignored():
    events = []
    engine = _engine(events)
    entry, _ = engine.register(ask_text("Name?"))

    assert engine.dispatch(_say("/start")) == []
    assert engine.dispatch(_say("   ")) == []
    assert engine.dispatch(SkippedEvent(event_id=1, reason="foreign_chat")) == []

    assert entry.slot.resolved is False
    assert [name for name, _ in events].count("correlation.ignored") == 3


def test_text_without_candidate_is_dropped():
    engine = _engine()
    entry, _ = engine.register(confirm("Deploy?"))

    assert engine.dispatch(_say("yes please")) == []
    assert entry.slot.resolved is False


def test_custom_text_state_only_accepts_cancel():
    engine = _engine()
    entry, _ = engine.register(
        InteractionRequest(
            message="Colour?",
            type=InteractionType.CHOICE_WITH_TEXT,
            options=[InteractionOption("Blue", "blue")],
            is_cancellable=True,
        )
    )
    cid = entry.correlation_id
    engine.dispatch(_press("{0}:custom".format(cid)))

    rejected = engine.dispatch(_press("{0}:select:blue".format(cid), action_id="q-old"))
    assert AnswerAction("q-old", "Send your answer as a text message.") in rejected
    assert entry.slot.resolved is False

    engine.dispatch(_press("{0}:cancel".format(cid)))
    assert entry.slot.wait(0).cancelled is True


def test_cancel_on_non_cancellable_request_is_rejected():
    engine = _engine()
    entry, _ = engine.register(confirm("Deploy?"))

    commands = engine.dispatch(_press("{0}:cancel".format(entry.correlation_id), action_id="q-c"))

    assert AnswerAction("q-c", "This request cannot be cancelled.") in commands
    assert entry.slot.resolved is False


def test_fail_resolves_cancelled_once():
    events = []
    engine = _engine(events)
    entry, _ = engine.register(confirm("Deploy?"))

    assert engine.fail(entry.correlation_id, "send failed") is True
    assert engine.fail(entry.correlation_id, "send failed") is False
    assert entry.slot.wait(0).cancelled is True
    assert "correlation.failed" in [name for name, _ in events]


def test_cancel_all_makes_every_prompt_inert():
    engine = _engine()
    first, _ = engine.register(confirm("One?"))
    second, _ = engine.register(ask_text("Two?"))

    commands = engine.cancel_all()

    assert {command.correlation_id for command in commands} == {first.correlation_id, second.correlation_id}
    assert all(command.final for command in commands)
    assert engine.pending_count == 0


def test_correlation_ids_are_unique_even_if_factory_repeats():
    ids = iter(["dupe0001", "dupe0001", "fresh001"])
    engine = CorrelationEngine(id_factory=lambda: next(ids))

    first, _ = engine.register(confirm("One?"))
    engine.cancel(first.correlation_id)
    second, _ = engine.register(confirm("Two?"))

    assert first.correlation_id == "dupe0001"
    assert second.correlation_id == "fresh001"


def test_notify_acknowledge_succeeds():
    engine = _engine()
    entry, commands = engine.register(InteractionRequest(message="Build finished"))

    assert _tokens(commands[0]) == ["{0}:confirm:ok".format(entry.correlation_id)]
    engine.dispatch(_press("{0}:confirm:ok".format(entry.correlation_id)))

    assert entry.slot.wait(0).success is True
