"""Blocking terminal channel: prompts on a stream and reads numbered answers."""

from __future__ import annotations

import os
import queue
import re
import sys
import threading
from typing import Callable, Dict, List, Optional, Set, TextIO, Tuple

from promptgate.interaction.cancel import CancelToken
from promptgate.interaction.errors import ChannelFailure
from promptgate.interaction.types import (
    InteractionRequest,
    InteractionResponse,
    InteractionType,
    require_every_type,
)
from promptgate.ui.render import option_lines, progress_line, render_prompt

_EOF = object()
_SPLIT_RE = re.compile(r"[,\s]+")

CUSTOM_KEYS = {"o", "other"}
CANCEL_KEYS = {"c", "cancel"}


class _LineReader:
    """Reads lines on a background thread so callers can poll for cancellation."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def read(self, cancel: CancelToken, poll_interval: float) -> str:
        self._ensure_thread()
        while True:
            cancel.raise_if_cancelled()
            try:
                item = self._queue.get(timeout=poll_interval)
            except queue.Empty:
                continue
            if item is _EOF:
                # Keep EOF visible to every later read.
                self._queue.put(_EOF)
                raise ChannelFailure("console input closed")
            return str(item)

    def _ensure_thread(self) -> None:
        with self._lock:
            if self._thread is not None:
                return
            self._thread = threading.Thread(
                target=self._loop,
                daemon=True,
                name="promptgate-console-reader",
            )
            self._thread.start()

    def _loop(self) -> None:
        while True:
            try:
                line = self._stream.readline()
            except (OSError, ValueError):
                line = ""
            if not line:
                self._queue.put(_EOF)
                return
            self._queue.put(line.rstrip("\r\n"))


class ConsoleChannel:
    """Terminal surface; a calling thread blocks until a valid answer or cancellation."""

    channel_name = "console"

    def __init__(
        self,
        *,
        input_stream: Optional[TextIO] = None,
        output_stream: Optional[TextIO] = None,
        is_tty: Optional[bool] = None,
        poll_interval: float = 0.1,
    ) -> None:
        self._out = output_stream or sys.stdout
        self._reader = _LineReader(input_stream or sys.stdin)
        self._is_tty = is_tty
        self._poll_interval = max(0.01, float(poll_interval))
        self._console_lock = threading.RLock()
        self._active_progress: Set[str] = set()
        term = str(os.getenv("TERM") or "")
        tty = is_tty if is_tty is not None else bool(getattr(self._out, "isatty", lambda: False)())
        self._supports_ansi = tty and term.lower() not in {"", "dumb"}

    def start(self) -> None:
        return

    def close(self) -> None:
        with self._console_lock:
            if self._active_progress:
                self._out.write("\n")
                self._out.flush()
            self._active_progress.clear()

    def render(self, request: InteractionRequest, cancel: CancelToken) -> InteractionResponse:
        handler = getattr(self, _HANDLERS[request.type])
        return handler(request, cancel)

    def report_progress(self, operation_id: str, current: int, total: int, status: str) -> None:
        line = progress_line(status, current, total)
        with self._console_lock:
            try:
                if self._supports_ansi:
                    self._out.write("\r\033[2K" + line)
                else:
                    self._out.write(line + "\n")
                self._out.flush()
            except (OSError, ValueError):
                return
            self._active_progress.add(operation_id)

    def end_progress(self, operation_id: str) -> None:
        with self._console_lock:
            if operation_id not in self._active_progress:
                return
            self._active_progress.discard(operation_id)
            if self._supports_ansi:
                try:
                    self._out.write("\n")
                    self._out.flush()
                except (OSError, ValueError):
                    return

    def _notify(self, request: InteractionRequest, cancel: CancelToken) -> InteractionResponse:
        self._show(request, [])
        return InteractionResponse.succeeded()

    def _confirm(self, request: InteractionRequest, cancel: CancelToken) -> InteractionResponse:
        options = request.effective_options()
        words = {option.label.strip().lower(): option for option in options}
        words.update({option.value.strip().lower(): option for option in options})

        def interpret(answer: str) -> Optional[InteractionResponse]:
            option = words.get(answer.lower())
            if option is None:
                return None
            return InteractionResponse.succeeded(selected_values=(option.value,), text_value=option.label)

        return self._choose_one(request, cancel, extra=interpret)

    def _single_choice(self, request: InteractionRequest, cancel: CancelToken) -> InteractionResponse:
        return self._choose_one(request, cancel)

    def _multi_choice(self, request: InteractionRequest, cancel: CancelToken) -> InteractionResponse:
        options = request.options
        defaults = request.default_values()
        lines = option_lines(options, marked=defaults, multi=True)
        lines.append(_selection_hint(request))
        lines.extend(self._footer_lines(request))

        while True:
            self._show(request, lines)
            answer = self._ask(cancel).strip()
            lowered = answer.lower()
            if request.is_cancellable and lowered in CANCEL_KEYS:
                return InteractionResponse.cancelled_response()
            if request.allow_custom_input and lowered in CUSTOM_KEYS:
                custom = self._custom_text(request, cancel)
                if custom is not None:
                    return custom
                continue

            if not answer:
                picked: Tuple[str, ...] = defaults
            else:
                parsed = _parse_indices(answer, len(options))
                if parsed is None:
                    self._say("Invalid selection.")
                    continue
                picked = tuple(options[index].value for index in parsed)

            if len(picked) < request.min_selections or len(picked) > request.max_selections:
                self._say(_selection_hint(request))
                continue
            labels = [request.label_for(value) for value in picked]
            return InteractionResponse.succeeded(selected_values=picked, text_value=", ".join(labels))

    def _text_input(self, request: InteractionRequest, cancel: CancelToken) -> InteractionResponse:
        hint = request.custom_input_placeholder
        if request.is_cancellable:
            hint = "{0} (empty line cancels)".format(hint)
        self._show(request, [hint])
        answer = self._ask(cancel)
        if request.is_cancellable and not answer.strip():
            return InteractionResponse.cancelled_response()
        return InteractionResponse.succeeded(text_value=answer)

    def _choice_with_text(self, request: InteractionRequest, cancel: CancelToken) -> InteractionResponse:
        return self._choose_one(request, cancel)

    def _choose_one(
        self,
        request: InteractionRequest,
        cancel: CancelToken,
        extra: Optional[Callable[[str], Optional[InteractionResponse]]] = None,
    ) -> InteractionResponse:
        options = request.effective_options()
        defaults = request.default_values()
        lines = option_lines(options, marked=defaults[:1])
        lines.extend(self._footer_lines(request))

        while True:
            self._show(request, lines)
            answer = self._ask(cancel).strip()
            lowered = answer.lower()

            if not answer and defaults:
                value = defaults[0]
                return InteractionResponse.succeeded(
                    selected_values=(value,),
                    text_value=request.label_for(value),
                )
            if request.allow_custom_input and lowered in CUSTOM_KEYS:
                custom = self._custom_text(request, cancel)
                if custom is not None:
                    return custom
                continue
            if request.is_cancellable and lowered in CANCEL_KEYS:
                return InteractionResponse.cancelled_response()
            if answer.isdigit():
                index = int(answer) - 1
                if 0 <= index < len(options):
                    option = options[index]
                    return InteractionResponse.succeeded(
                        selected_values=(option.value,),
                        text_value=option.label,
                    )
            if extra is not None and answer:
                interpreted = extra(answer)
                if interpreted is not None:
                    return interpreted
            self._say("Invalid option.")

    def _custom_text(self, request: InteractionRequest, cancel: CancelToken) -> Optional[InteractionResponse]:
        with self._console_lock:
            self._out.write("{0}: ".format(request.custom_input_placeholder))
            self._out.flush()
        text = self._ask(cancel, prompt=False).strip()
        if not text:
            return None
        return InteractionResponse.succeeded(custom_input=text, text_value=text)

    @staticmethod
    def _footer_lines(request: InteractionRequest) -> List[str]:
        lines = []
        if request.allow_custom_input:
            lines.append("O. [Other] {0}".format(request.custom_input_placeholder))
        if request.is_cancellable:
            lines.append("C. Cancel")
        return lines

    def _show(self, request: InteractionRequest, lines: List[str]) -> None:
        with self._console_lock:
            render_prompt(request, lines, self._out, is_tty=self._is_tty)

    def _say(self, text: str) -> None:
        with self._console_lock:
            self._out.write(text + "\n")
            self._out.flush()

    def _ask(self, cancel: CancelToken, prompt: bool = True) -> str:
        if prompt:
            with self._console_lock:
                self._out.write("> ")
                self._out.flush()
        return self._reader.read(cancel, self._poll_interval)


def _selection_hint(request: InteractionRequest) -> str:
    return "Select {0} to {1} (numbers separated by commas or spaces).".format(
        request.min_selections,
        request.max_selections,
    )


def _parse_indices(answer: str, count: int) -> Optional[List[int]]:
    indices: List[int] = []
    for part in _SPLIT_RE.split(answer.strip()):
        if not part:
            continue
        if not part.isdigit():
            return None
        index = int(part) - 1
        if index < 0 or index >= count:
            return None
        if index not in indices:
            indices.append(index)
    return indices


_HANDLERS: Dict[InteractionType, str] = {
    InteractionType.NOTIFY: "_notify",
    InteractionType.CONFIRM: "_confirm",
    InteractionType.SINGLE_CHOICE: "_single_choice",
    InteractionType.MULTI_CHOICE: "_multi_choice",
    InteractionType.TEXT_INPUT: "_text_input",
    InteractionType.CHOICE_WITH_TEXT: "_choice_with_text",
}

require_every_type(_HANDLERS, "console channel")
