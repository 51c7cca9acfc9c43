"""Desktop-style dialog channel on a Textual host app.

The app owns the UI thread. Callers run on worker threads: `render` marshals
screen construction with `call_from_thread` and blocks on a per-call
resolution slot that button handlers complete exactly once.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import (
    Button,
    Checkbox,
    Footer,
    Input,
    Label,
    ProgressBar,
    RadioButton,
    RadioSet,
    Static,
)

from promptgate.interaction.cancel import CancelToken
from promptgate.interaction.errors import ChannelFailure
from promptgate.interaction.resolution import ResolutionSlot
from promptgate.interaction.types import (
    InteractionRequest,
    InteractionResponse,
    InteractionType,
    require_every_type,
)


class DialogContext:
    """Per-call state: the request, its resolution slot, and the widgets built for it."""

    def __init__(self, request: InteractionRequest) -> None:
        self.request = request
        self.slot: ResolutionSlot[InteractionResponse] = ResolutionSlot()
        self.screen: Optional["InteractionDialog"] = None
        self.radio: Optional[RadioSet] = None
        self.checkboxes: List[Tuple[str, Checkbox]] = []
        self.text_input: Optional[Input] = None

    @property
    def resolved(self) -> bool:
        return self.slot.resolved

    def resolve(self, response: InteractionResponse) -> bool:
        return self.slot.try_resolve(response)


class InteractionDialog(ModalScreen[None]):
    """One modal per request; every exit path goes through `_finish`."""

    BINDINGS = [("escape", "cancel", "Cancel")]

    def __init__(self, context: DialogContext) -> None:
        super().__init__()
        self.context = context
        self.stale = False
        self.error_text = ""
        context.screen = self

    def compose(self) -> ComposeResult:
        request = self.context.request
        body = [
            Static(request.title, id="dialog-title"),
            Static(request.message, id="dialog-message"),
        ]
        body.extend(_BUILDERS[request.type](self.context))
        body.append(Static("", id="dialog-error"))
        buttons = list(_action_buttons(request))
        if request.is_cancellable:
            buttons.append(Button("Cancel", variant="default", id="cancel"))
        body.append(Horizontal(*buttons, id="dialog-buttons"))
        yield Vertical(*body, id="dialog-body")

    def on_screen_resume(self) -> None:
        # Resolved while another dialog was on top; leave as soon as we surface.
        if self.stale:
            self.dismiss()

    def action_cancel(self) -> None:
        self._finish(InteractionResponse.cancelled_response())

    def on_button_pressed(self, event: Button.Pressed) -> None:
        button_id = event.button.id or ""
        request = self.context.request
        if button_id == "cancel":
            self._finish(InteractionResponse.cancelled_response())
            return
        if button_id == "ok":
            self._finish(InteractionResponse.succeeded())
            return
        if button_id.startswith("opt-"):
            option = request.effective_options()[int(button_id[4:])]
            self._finish(
                InteractionResponse.succeeded(selected_values=(option.value,), text_value=option.label)
            )
            return
        if button_id == "submit":
            self._submit()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self._submit()

    def _submit(self) -> None:
        response, error = _SUBMITTERS[self.context.request.type](self.context)
        if response is None:
            self.error_text = error
            self.query_one("#dialog-error", Static).update(error)
            return
        self._finish(response)

    def _finish(self, response: InteractionResponse) -> None:
        if not self.context.resolve(response):
            return
        self.dismiss()


def _action_buttons(request: InteractionRequest) -> List[Button]:
    if request.type == InteractionType.NOTIFY:
        return [Button("OK", variant="primary", id="ok")]
    if request.type == InteractionType.CONFIRM:
        return [
            Button(
                option.label,
                variant="primary" if option.is_default else "default",
                id="opt-{0}".format(index),
            )
            for index, option in enumerate(request.effective_options())
        ]
    return [Button("Submit", variant="primary", id="submit")]


def _build_nothing(context: DialogContext) -> List[Any]:
    return []


def _build_radio(context: DialogContext) -> List[Any]:
    request = context.request
    defaults = request.default_values()[:1]
    context.radio = RadioSet(
        *[RadioButton(option.label, value=option.value in defaults) for option in request.options],
        id="choices",
    )
    return [context.radio] + _build_custom(context)


def _build_checks(context: DialogContext) -> List[Any]:
    request = context.request
    defaults = set(request.default_values())
    context.checkboxes = [
        (option.value, Checkbox(option.label, value=option.value in defaults, id="check-{0}".format(index)))
        for index, option in enumerate(request.options)
    ]
    hint = Static(
        "Select {0} to {1}.".format(request.min_selections, request.max_selections),
        id="dialog-hint",
    )
    return [checkbox for _, checkbox in context.checkboxes] + [hint] + _build_custom(context)


def _build_text(context: DialogContext) -> List[Any]:
    context.text_input = Input(placeholder=context.request.custom_input_placeholder, id="text")
    return [context.text_input]


def _build_custom(context: DialogContext) -> List[Any]:
    if not context.request.allow_custom_input:
        return []
    context.text_input = Input(placeholder=context.request.custom_input_placeholder, id="custom")
    return [context.text_input]


Submission = Tuple[Optional[InteractionResponse], str]


def _submit_unsupported(context: DialogContext) -> Submission:
    return None, "Use the buttons below."


def _submit_radio(context: DialogContext) -> Submission:
    index = context.radio.pressed_index if context.radio is not None else -1
    if index < 0:
        return None, "Select an option."
    option = context.request.options[index]
    return InteractionResponse.succeeded(selected_values=(option.value,), text_value=option.label), ""


def _submit_checks(context: DialogContext) -> Submission:
    request = context.request
    picked = tuple(value for value, checkbox in context.checkboxes if checkbox.value)
    if len(picked) < request.min_selections or len(picked) > request.max_selections:
        return None, "Select {0} to {1}.".format(request.min_selections, request.max_selections)
    labels = [request.label_for(value) for value in picked]
    return InteractionResponse.succeeded(selected_values=picked, text_value=", ".join(labels)), ""


def _submit_text(context: DialogContext) -> Submission:
    value = context.text_input.value if context.text_input is not None else ""
    return InteractionResponse.succeeded(text_value=value), ""


def _submit_custom(context: DialogContext) -> Optional[InteractionResponse]:
    custom = context.text_input.value.strip() if context.text_input is not None else ""
    if not custom:
        return None
    return InteractionResponse.succeeded(custom_input=custom, text_value=custom)


def _submit_radio_or_text(context: DialogContext) -> Submission:
    custom = _submit_custom(context)
    if custom is not None:
        return custom, ""
    return _submit_radio(context)


def _submit_checks_or_text(context: DialogContext) -> Submission:
    custom = _submit_custom(context)
    if custom is not None:
        return custom, ""
    return _submit_checks(context)


_BUILDERS: Dict[InteractionType, Callable[[DialogContext], List[Any]]] = {
    InteractionType.NOTIFY: _build_nothing,
    InteractionType.CONFIRM: _build_nothing,
    InteractionType.SINGLE_CHOICE: _build_radio,
    InteractionType.MULTI_CHOICE: _build_checks,
    InteractionType.TEXT_INPUT: _build_text,
    InteractionType.CHOICE_WITH_TEXT: _build_radio,
}

_SUBMITTERS: Dict[InteractionType, Callable[[DialogContext], Submission]] = {
    InteractionType.NOTIFY: _submit_unsupported,
    InteractionType.CONFIRM: _submit_unsupported,
    InteractionType.SINGLE_CHOICE: _submit_radio_or_text,
    InteractionType.MULTI_CHOICE: _submit_checks_or_text,
    InteractionType.TEXT_INPUT: _submit_text,
    InteractionType.CHOICE_WITH_TEXT: _submit_radio_or_text,
}

require_every_type(_BUILDERS, "dialog builders")
require_every_type(_SUBMITTERS, "dialog submitters")


class DialogHostApp(App[Any]):
    """Hosts interaction dialogs and a list of progress bars keyed by operation id."""

    CSS = """
    Screen {
        layout: vertical;
        background: #111111;
        color: #f1f1f1;
    }

    #host-status {
        height: 1;
        padding: 0 1;
        background: #1d1d1d;
        color: #dddddd;
    }

    #progress-list {
        height: 1fr;
        padding: 0 1;
    }

    InteractionDialog {
        align: center middle;
    }

    #dialog-body {
        width: 72;
        max-width: 90%;
        height: auto;
        border: round #4a4a4a;
        background: #171717;
        padding: 1 2;
    }

    #dialog-title {
        text-style: bold;
    }

    #dialog-error {
        color: #e06c75;
        height: auto;
    }

    #dialog-buttons {
        margin-top: 1;
        height: auto;
        align-horizontal: right;
    }
    """

    BINDINGS = [Binding("ctrl+q", "quit", "Quit")]

    def __init__(self, task: Optional[Callable[[], Any]] = None) -> None:
        super().__init__()
        self.host_ready = threading.Event()
        self.task_error: Optional[Exception] = None
        self._session_task = task
        self._contexts: Set[DialogContext] = set()
        self._progress_rows: Dict[str, Tuple[Vertical, Label, ProgressBar]] = {}

    def compose(self) -> ComposeResult:
        yield Static("promptgate", id="host-status")
        yield VerticalScroll(id="progress-list")
        yield Footer()

    def on_mount(self) -> None:
        self.title = "promptgate"
        self.host_ready.set()
        if self._session_task is not None:
            threading.Thread(target=self._run_session_task, daemon=True, name="promptgate-dialog-task").start()

    def exit(self, *args: Any, **kwargs: Any) -> None:
        # Callers blocked on open dialogs must not outlive the host.
        self.host_ready.clear()
        for context in list(self._contexts):
            context.resolve(InteractionResponse.cancelled_response())
        self._contexts.clear()
        super().exit(*args, **kwargs)

    def open_dialog(self, context: DialogContext) -> None:
        if context.resolved:
            return
        self._contexts.add(context)
        self.push_screen(InteractionDialog(context), lambda _result: self._contexts.discard(context))

    def close_dialog(self, context: DialogContext) -> None:
        self._contexts.discard(context)
        screen = context.screen
        if screen is None:
            return
        if self.screen is screen:
            screen.dismiss()
            return
        if screen in self.screen_stack:
            screen.stale = True

    def update_progress(self, operation_id: str, current: int, total: int, status: str) -> None:
        row = self._progress_rows.get(operation_id)
        if row is None:
            label = Label(status)
            bar = ProgressBar(total=max(1, total), show_eta=False)
            container = Vertical(label, bar, classes="progress-row")
            self._progress_rows[operation_id] = (container, label, bar)
            self.query_one("#progress-list", VerticalScroll).mount(container)
            self.call_after_refresh(bar.update, total=max(1, total), progress=max(0, current))
            return
        _, label, bar = row
        label.update(status)
        bar.update(total=max(1, total), progress=max(0, current))

    def remove_progress(self, operation_id: str) -> None:
        row = self._progress_rows.pop(operation_id, None)
        if row is not None:
            row[0].remove()

    def _run_session_task(self) -> None:
        result: Any = None
        try:
            result = self._session_task() if self._session_task is not None else None
        except Exception as exc:
            self.task_error = exc
        finally:
            try:
                self.call_from_thread(self.exit, result)
            except RuntimeError:
                return


class DialogChannel:
    channel_name = "dialog"

    def __init__(self, app: Optional[DialogHostApp] = None, *, ready_timeout: float = 10.0) -> None:
        self._app = app
        self._ready_timeout = float(ready_timeout)

    def bind(self, app: DialogHostApp) -> None:
        self._app = app

    def start(self) -> None:
        return

    def close(self) -> None:
        return

    def render(self, request: InteractionRequest, cancel: CancelToken) -> InteractionResponse:
        app = self._require_app()
        context = DialogContext(request)

        def on_cancel() -> None:
            if context.resolve(InteractionResponse.cancelled_response(timed_out=cancel.timed_out)):
                self._post(app.close_dialog, context)

        unregister = cancel.register(on_cancel)
        try:
            if not context.resolved:
                try:
                    app.call_from_thread(app.open_dialog, context)
                except RuntimeError as exc:
                    raise ChannelFailure("dialog host is not running: {0}".format(exc)) from exc
            response = context.slot.wait()
        finally:
            unregister()
        if response is None:
            return InteractionResponse.cancelled_response()
        return response

    def report_progress(self, operation_id: str, current: int, total: int, status: str) -> None:
        if self._app is None:
            return
        self._post(self._app.update_progress, operation_id, int(current), int(total), status)

    def end_progress(self, operation_id: str) -> None:
        if self._app is None:
            return
        self._post(self._app.remove_progress, operation_id)

    def _require_app(self) -> DialogHostApp:
        app = self._app
        if app is None:
            raise ChannelFailure("dialog channel has no host app")
        if not app.host_ready.wait(self._ready_timeout):
            raise ChannelFailure("dialog host did not start")
        return app

    def _post(self, callback: Callable[..., Any], *args: Any) -> None:
        app = self._app
        if app is None or not app.host_ready.is_set():
            return
        try:
            app.call_from_thread(callback, *args)
        except Exception:
            # The host is shutting down; there is nothing left to update.
            return


def run_dialog_session(
    task: Callable[[DialogChannel], Any],
    channel: Optional[DialogChannel] = None,
    *,
    headless: bool = False,
) -> Any:
    """Run the host app on this thread and `task(channel)` on a worker thread."""

    channel = channel or DialogChannel()
    app = DialogHostApp(task=lambda: task(channel))
    channel.bind(app)
    result = app.run(headless=headless)
    if app.task_error is not None:
        raise app.task_error
    return result
