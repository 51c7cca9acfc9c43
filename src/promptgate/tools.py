"""Caller-facing operation set with string/list projections of each response."""

from __future__ import annotations

import threading
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from promptgate.interaction.orchestrator import InteractionOrchestrator, ProgressSink
from promptgate.interaction.types import (
    DEFAULT_PLACEHOLDER,
    DEFAULT_TITLE,
    InteractionOption,
    InteractionRequest,
    InteractionResponse,
    InteractionType,
)

CANCELLED = "cancelled"
CUSTOM_PREFIX = "custom:"

OptionLike = Union[InteractionOption, str, Sequence[str], Dict[str, Any]]


def coerce_option(item: OptionLike) -> InteractionOption:
    """Accept an InteractionOption, a bare string, a (label, value) pair, or a mapping."""

    if isinstance(item, InteractionOption):
        return item
    if isinstance(item, str):
        return InteractionOption(label=item, value=item)
    if isinstance(item, dict):
        label = str(item.get("label") or item.get("value") or "")
        return InteractionOption(
            label=label,
            value=str(item.get("value") or label),
            is_default=bool(item.get("is_default", False)),
            description=str(item.get("description") or ""),
        )
    parts = list(item)
    if len(parts) < 2:
        raise ValueError("option pairs need a label and a value: {0!r}".format(item))
    return InteractionOption(label=str(parts[0]), value=str(parts[1]))


def coerce_options(items: Iterable[OptionLike]) -> tuple:
    return tuple(coerce_option(item) for item in items or ())


def project_choice(response: InteractionResponse) -> str:
    if not response.success:
        return CANCELLED
    if response.custom_input is not None:
        return "{0}{1}".format(CUSTOM_PREFIX, response.custom_input)
    return response.first_value or CANCELLED


class InteractionTools:
    """The operations an automated caller invokes; every call returns plain data."""

    def __init__(self, orchestrator: InteractionOrchestrator) -> None:
        self._orchestrator = orchestrator
        self._progress_lock = threading.Lock()
        self._progress: Dict[str, ProgressSink] = {}
        self._background: List[threading.Thread] = []

    def notify(
        self,
        message: str,
        title: str = DEFAULT_TITLE,
        wait_confirmation: bool = False,
        timeout: Optional[float] = None,
    ) -> str:
        request = InteractionRequest(
            message=message,
            title=title,
            type=InteractionType.NOTIFY,
            timeout=timeout,
            wait_confirmation=wait_confirmation,
        )
        if not wait_confirmation:
            worker = threading.Thread(
                target=self._orchestrator.interact,
                args=(request,),
                daemon=True,
                name="promptgate-notify",
            )
            worker.start()
            with self._progress_lock:
                self._background = [item for item in self._background if item.is_alive()]
                self._background.append(worker)
            return "Notification sent."

        response = self._orchestrator.interact(request)
        if response.success:
            return "Notification acknowledged."
        if response.timed_out:
            return "Notification timed out."
        return "Notification dismissed."

    def confirm(
        self,
        message: str,
        title: str = DEFAULT_TITLE,
        is_cancellable: bool = True,
        timeout: Optional[float] = None,
    ) -> str:
        request = InteractionRequest(
            message=message,
            title=title,
            type=InteractionType.CONFIRM,
            options=(
                InteractionOption(label="Yes", value="yes", is_default=True),
                InteractionOption(label="No", value="no"),
            ),
            is_cancellable=is_cancellable,
            timeout=timeout,
        )
        response = self._orchestrator.interact(request)
        if not response.success:
            return CANCELLED
        return "yes" if response.first_value == "yes" else "no"

    def choose_option(
        self,
        message: str,
        options: Iterable[OptionLike],
        title: str = DEFAULT_TITLE,
        allow_custom_input: bool = False,
        timeout: Optional[float] = None,
    ) -> str:
        request = InteractionRequest(
            message=message,
            title=title,
            type=InteractionType.CHOICE_WITH_TEXT if allow_custom_input else InteractionType.SINGLE_CHOICE,
            options=coerce_options(options),
            allow_custom_input=allow_custom_input,
            is_cancellable=True,
            timeout=timeout,
        )
        return project_choice(self._orchestrator.interact(request))

    def choose_multiple(
        self,
        message: str,
        options: Iterable[OptionLike],
        title: str = DEFAULT_TITLE,
        min_selections: int = 0,
        max_selections: int = 1,
        timeout: Optional[float] = None,
    ) -> List[str]:
        request = InteractionRequest(
            message=message,
            title=title,
            type=InteractionType.MULTI_CHOICE,
            options=coerce_options(options),
            min_selections=min_selections,
            max_selections=max_selections,
            is_cancellable=True,
            timeout=timeout,
        )
        response = self._orchestrator.interact(request)
        if not response.success:
            return []
        if response.custom_input is not None:
            return ["{0}{1}".format(CUSTOM_PREFIX, response.custom_input)]
        return list(response.selected_values)

    def ask_text(
        self,
        message: str,
        title: str = DEFAULT_TITLE,
        placeholder: str = DEFAULT_PLACEHOLDER,
        timeout: Optional[float] = None,
    ) -> str:
        request = InteractionRequest(
            message=message,
            title=title,
            type=InteractionType.TEXT_INPUT,
            custom_input_placeholder=placeholder,
            is_cancellable=True,
            timeout=timeout,
        )
        response = self._orchestrator.interact(request)
        if not response.success:
            return ""
        return response.text_value or ""

    def choose_with_custom_text(
        self,
        message: str,
        options: Iterable[OptionLike],
        title: str = DEFAULT_TITLE,
        placeholder: str = DEFAULT_PLACEHOLDER,
        timeout: Optional[float] = None,
    ) -> str:
        request = InteractionRequest(
            message=message,
            title=title,
            type=InteractionType.CHOICE_WITH_TEXT,
            options=coerce_options(options),
            allow_custom_input=True,
            custom_input_placeholder=placeholder,
            is_cancellable=True,
            timeout=timeout,
        )
        return project_choice(self._orchestrator.interact(request))

    def report_progress(
        self,
        operation_name: str,
        current: int,
        total: int,
        status: str = "",
        done: bool = False,
    ) -> str:
        name = str(operation_name or "").strip() or "operation"
        with self._progress_lock:
            sink = self._progress.get(name)
            if sink is None and not done:
                sink = self._orchestrator.create_progress(name, total)
                self._progress[name] = sink
            if done:
                self._progress.pop(name, None)

        if sink is None:
            return "No progress reported for '{0}'.".format(name)
        if done:
            sink.report(current, total, status)
            sink.close()
            return "Progress for '{0}' completed.".format(name)
        sink.report(current, total, status)
        return "Progress for '{0}': {1}/{2}.".format(name, int(current), int(total))

    def close(self, grace: float = 1.0) -> None:
        """End open progress surfaces and give unawaited notifications a moment to render."""

        with self._progress_lock:
            sinks = list(self._progress.values())
            self._progress.clear()
            workers = list(self._background)
            self._background.clear()
        for sink in sinks:
            sink.close()
        for worker in workers:
            worker.join(timeout=grace)
