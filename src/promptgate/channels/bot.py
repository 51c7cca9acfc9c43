"""Chat-bot render channel: answers arrive later as polled inbound events."""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from promptgate.correlation.engine import CorrelationEngine
from promptgate.correlation.messages import (
    AnswerAction,
    EditPrompt,
    EndProgress,
    InboundEvent,
    OutboundCommand,
    OutboundMessage,
    ReportProgress,
    SendNotice,
    SendPrompt,
)
from promptgate.interaction.cancel import CancelToken
from promptgate.interaction.errors import ChannelConfigurationError
from promptgate.interaction.types import InteractionRequest, InteractionResponse, InteractionType
from promptgate.kernel.types import EventSink, now_ms
from promptgate.ui.render import progress_bar


class BotTransport(Protocol):
    """Wire adapter for one chat service; the channel never sees its payload format."""

    transport_name: str

    def verify(self) -> Dict[str, Any]:
        """Check credentials; raise ChannelConfigurationError when unusable."""

    def fetch_events(self, offset: int, timeout: float) -> List[InboundEvent]:
        """Long-poll for events with id >= offset."""

    def send_message(self, message: OutboundMessage) -> str:
        """Send a new message and return its id."""

    def edit_message(self, message_id: str, message: OutboundMessage) -> None:
        """Replace the content and actions of a sent message."""

    def answer_action(self, action_id: str, text: str = "") -> None:
        """Acknowledge a pressed action, optionally with a short notice."""

    def close(self) -> None:
        """Release network resources."""


@dataclass
class BotHealthSnapshot:
    poll_state: str = "stopped"
    poll_offset: int = 0
    poll_failures: int = 0
    inbound_count: int = 0
    outbound_count: int = 0
    pending_count: int = 0
    last_inbound_at_ms: Optional[int] = None
    last_error: Optional[str] = None


class BotChannel:
    """Registers requests with the correlation engine and waits for inbound answers.

    One poll thread feeds inbound events to the engine; one sender thread drains
    the outbox and is the only owner of the prompt and progress message ids.
    """

    channel_name = "bot"

    def __init__(
        self,
        transport: BotTransport,
        *,
        poll_timeout: float = 30.0,
        retry_backoff: float = 1.0,
        skip_backlog: bool = True,
        event_sink: Optional[EventSink] = None,
        engine: Optional[CorrelationEngine] = None,
    ) -> None:
        self._transport = transport
        self.channel_name = str(getattr(transport, "transport_name", "") or "bot")
        self._poll_timeout = max(0.0, float(poll_timeout))
        self._retry_backoff = max(0.0, float(retry_backoff))
        self._skip_backlog = bool(skip_backlog)
        self._event_sink = event_sink
        self._engine = engine or CorrelationEngine(event_sink=event_sink)

        self._stop_event = threading.Event()
        self._control_lock = threading.Lock()
        self._started = False
        self._closed = False
        self._poll_thread: Optional[threading.Thread] = None
        self._sender_thread: Optional[threading.Thread] = None
        self._outbox: "queue.Queue[Optional[OutboundCommand]]" = queue.Queue()

        # Owned by the sender thread.
        self._prompt_ids: Dict[str, str] = {}
        self._progress_ids: Dict[str, str] = {}
        self._progress_status: Dict[str, str] = {}

        self._health_lock = threading.Lock()
        self._health = BotHealthSnapshot()

    @property
    def engine(self) -> CorrelationEngine:
        return self._engine

    def start(self) -> None:
        with self._control_lock:
            if self._closed:
                raise ChannelConfigurationError("channel is closed")
            if self._started:
                return
            self._started = True

        try:
            identity = self._transport.verify()
            offset = self._backlog_offset() if self._skip_backlog else 0
        except Exception:
            # Leave the channel startable again; a later render retries.
            with self._control_lock:
                self._started = False
            raise

        self._set_health(poll_state="running", poll_offset=offset)
        self._emit("channel.started", {"identity": dict(identity or {}), "offset": offset})

        self._stop_event.clear()
        self._sender_thread = threading.Thread(
            target=self._sender_loop,
            daemon=True,
            name="promptgate-{0}-sender".format(self.channel_name),
        )
        self._poll_thread = threading.Thread(
            target=self._poll_loop,
            args=(offset,),
            daemon=True,
            name="promptgate-{0}-poll".format(self.channel_name),
        )
        self._sender_thread.start()
        self._poll_thread.start()

    def close(self) -> None:
        with self._control_lock:
            if self._closed:
                return
            self._closed = True
            started = self._started

        self._enqueue(self._engine.cancel_all())
        self._stop_event.set()
        # The poll thread may still enqueue replies; stop it before the sentinel.
        self._join(self._poll_thread if started else None)
        self._outbox.put(None)
        self._join(self._sender_thread if started else None)
        try:
            self._transport.close()
        except Exception as exc:
            self._emit("channel.close_failed", {"error": str(exc)})
        self._set_health(poll_state="stopped")
        self._emit("channel.stopped", {})

    def render(self, request: InteractionRequest, cancel: CancelToken) -> InteractionResponse:
        with self._control_lock:
            closed = self._closed
        if closed:
            return InteractionResponse.cancelled_response()
        self.start()

        if request.type == InteractionType.NOTIFY and not request.wait_confirmation:
            self._enqueue([SendNotice(self._engine.notice_message(request))])
            return InteractionResponse.succeeded()

        entry, commands = self._engine.register(request)
        self._enqueue(commands)
        correlation_id = entry.correlation_id

        def on_cancel() -> None:
            self._enqueue(self._engine.cancel(correlation_id, timed_out=cancel.timed_out))

        unregister = cancel.register(on_cancel)
        with self._control_lock:
            closed = self._closed
        if closed:
            self._enqueue(self._engine.cancel(correlation_id))
        try:
            response = entry.slot.wait()
        finally:
            unregister()
        if response is None:
            return InteractionResponse.cancelled_response()
        return response

    def report_progress(self, operation_id: str, current: int, total: int, status: str) -> None:
        self._enqueue([ReportProgress(str(operation_id), int(current), int(total), str(status or ""))])

    def end_progress(self, operation_id: str) -> None:
        self._enqueue([EndProgress(str(operation_id))])

    def health_snapshot(self) -> BotHealthSnapshot:
        with self._health_lock:
            snapshot = BotHealthSnapshot(**vars(self._health))
        snapshot.pending_count = self._engine.pending_count
        return snapshot

    def _backlog_offset(self) -> int:
        try:
            events = self._transport.fetch_events(-1, 0)
        except Exception as exc:
            self._emit("poll.failed", {"error": str(exc), "phase": "backlog"})
            return 0
        if not events:
            return 0
        return max(int(event.event_id) for event in events) + 1

    def _poll_loop(self, offset: int) -> None:
        while not self._stop_event.is_set():
            try:
                events = self._transport.fetch_events(offset, self._poll_timeout)
            except Exception as exc:
                with self._health_lock:
                    self._health.poll_failures += 1
                    self._health.last_error = str(exc)
                self._emit("poll.failed", {"error": str(exc), "offset": offset})
                self._stop_event.wait(self._retry_backoff)
                continue

            for event in events:
                offset = max(offset, int(event.event_id) + 1)
                with self._health_lock:
                    self._health.inbound_count += 1
                    self._health.poll_offset = offset
                    self._health.last_inbound_at_ms = now_ms()
                self._enqueue(self._engine.dispatch(event))

    def _sender_loop(self) -> None:
        while True:
            command = self._outbox.get()
            if command is None:
                # Drain what was queued before close so prompts end up inert.
                self._drain_remaining()
                return
            self._deliver(command)

    def _drain_remaining(self) -> None:
        while True:
            try:
                command = self._outbox.get_nowait()
            except queue.Empty:
                return
            if command is not None:
                self._deliver(command)

    def _deliver(self, command: OutboundCommand) -> None:
        try:
            if isinstance(command, SendPrompt):
                self._send_prompt(command)
            elif isinstance(command, SendNotice):
                self._transport.send_message(command.message)
            elif isinstance(command, EditPrompt):
                self._edit_prompt(command)
            elif isinstance(command, AnswerAction):
                self._transport.answer_action(command.action_id, command.text)
            elif isinstance(command, ReportProgress):
                self._send_progress(command)
            elif isinstance(command, EndProgress):
                self._finish_progress(command)
        except Exception as exc:
            self._set_health(last_error=str(exc))
            self._emit(
                "outbox.failed",
                {"command": type(command).__name__, "error": str(exc)},
            )
            return
        with self._health_lock:
            self._health.outbound_count += 1

    def _send_prompt(self, command: SendPrompt) -> None:
        try:
            message_id = self._transport.send_message(command.message)
        except Exception as exc:
            # Without a delivered prompt nobody can answer; resolve instead of hanging.
            self._engine.fail(command.correlation_id, str(exc))
            raise
        self._prompt_ids[command.correlation_id] = str(message_id)

    def _edit_prompt(self, command: EditPrompt) -> None:
        if command.final:
            message_id = self._prompt_ids.pop(command.correlation_id, None)
        else:
            message_id = self._prompt_ids.get(command.correlation_id)
        if message_id is None:
            return
        self._transport.edit_message(message_id, command.message)

    def _send_progress(self, command: ReportProgress) -> None:
        status = command.status or "Working"
        self._progress_status[command.operation_id] = status
        message = OutboundMessage(
            title="⏳ {0}".format(status),
            body=progress_bar(command.current, command.total),
        )
        message_id = self._progress_ids.get(command.operation_id)
        if message_id is None:
            self._progress_ids[command.operation_id] = self._transport.send_message(message)
            return
        self._transport.edit_message(message_id, message)

    def _finish_progress(self, command: EndProgress) -> None:
        message_id = self._progress_ids.pop(command.operation_id, None)
        status = self._progress_status.pop(command.operation_id, "")
        if message_id is None:
            return
        self._transport.edit_message(
            message_id,
            OutboundMessage(title="✅ Operation complete", body=status),
        )

    @staticmethod
    def _join(thread: Optional[threading.Thread]) -> None:
        if thread is not None and thread.is_alive():
            thread.join(timeout=3)

    def _enqueue(self, commands: List[OutboundCommand]) -> None:
        for command in commands:
            self._outbox.put(command)

    def _set_health(self, **changes: Any) -> None:
        with self._health_lock:
            for key, value in changes.items():
                setattr(self._health, key, value)

    def _emit(self, event_type: str, payload: Dict[str, Any]) -> None:
        if self._event_sink is None:
            return
        data = {"channel": self.channel_name}
        data.update(payload)
        try:
            self._event_sink(event_type, data)
        except Exception:
            return
