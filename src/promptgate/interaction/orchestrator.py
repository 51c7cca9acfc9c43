"""Orchestrator: timeout/cancel discipline and response normalization for any channel."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any, Dict, Optional

from promptgate.interaction.cancel import CancelScope, CancelToken
from promptgate.interaction.errors import ChannelConfigurationError, InteractionCancelled
from promptgate.interaction.types import (
    InteractionRequest,
    InteractionResponse,
    InteractionType,
    InvalidInteractionRequest,
)
from promptgate.kernel.types import EventSink, new_id

if TYPE_CHECKING:  # pragma: no cover
    from promptgate.channels.base import RenderChannel


class ProgressSink:
    """Forwards progress for one operation id; `close()` ends it exactly once."""

    def __init__(
        self,
        channel: "RenderChannel",
        *,
        operation_id: str,
        name: str,
        total: int,
        event_sink: Optional[EventSink] = None,
    ) -> None:
        self._channel = channel
        self.operation_id = operation_id
        self.name = name
        self.total = max(0, int(total))
        self._event_sink = event_sink
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def report(self, current: int, total: Optional[int] = None, status: str = "") -> None:
        with self._lock:
            if self._closed:
                return
            if total is not None:
                self.total = max(0, int(total))
            effective_total = self.total
        try:
            self._channel.report_progress(
                self.operation_id,
                int(current),
                effective_total,
                status or self.name,
            )
        except Exception as exc:
            self._emit("progress.failed", {"error": str(exc)})

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        try:
            self._channel.end_progress(self.operation_id)
        except Exception as exc:
            self._emit("progress.failed", {"error": str(exc)})
            return
        self._emit("progress.ended", {})

    def __enter__(self) -> "ProgressSink":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _emit(self, event_type: str, payload: Dict[str, Any]) -> None:
        if self._event_sink is None:
            return
        data = {"operation_id": self.operation_id, "name": self.name}
        data.update(payload)
        try:
            self._event_sink(event_type, data)
        except Exception:
            return


class InteractionOrchestrator:
    """Applies per-call timeout/cancellation uniformly and never lets a channel error escape."""

    def __init__(
        self,
        channel: "RenderChannel",
        *,
        event_sink: Optional[EventSink] = None,
        default_timeout: Optional[float] = None,
    ) -> None:
        self._channel = channel
        self._event_sink = event_sink
        self._default_timeout = default_timeout if default_timeout and default_timeout > 0 else None

    @property
    def channel(self) -> "RenderChannel":
        return self._channel

    @property
    def channel_name(self) -> str:
        return str(getattr(self._channel, "channel_name", "unknown"))

    def interact(
        self,
        request: InteractionRequest,
        cancel: Optional[CancelToken] = None,
    ) -> InteractionResponse:
        interaction_id = new_id("int")
        try:
            request.validate()
        except InvalidInteractionRequest as exc:
            self._emit(
                "interaction.failed",
                {"interaction_id": interaction_id, "reason": "invalid_request", "error": str(exc)},
            )
            return InteractionResponse.cancelled_response()

        timeout = request.timeout if request.timeout is not None else self._default_timeout
        self._emit(
            "interaction.requested",
            {
                "interaction_id": interaction_id,
                "type": request.type.value,
                "title": request.title,
                "option_count": len(request.options),
                "timeout": timeout,
                "channel": self.channel_name,
            },
        )

        with CancelScope(cancel, timeout) as scope:
            try:
                response = self._channel.render(request, scope.token)
            except InteractionCancelled:
                response = InteractionResponse.cancelled_response(timed_out=scope.timed_out)
            except ChannelConfigurationError as exc:
                self._emit(
                    "interaction.failed",
                    {"interaction_id": interaction_id, "reason": "channel_unavailable", "error": str(exc)},
                )
                raise
            except Exception as exc:
                self._emit(
                    "interaction.failed",
                    {
                        "interaction_id": interaction_id,
                        "reason": "channel_failure",
                        "error": "{0}: {1}".format(type(exc).__name__, exc),
                    },
                )
                return InteractionResponse.cancelled_response()

            normalized = self._normalize(request, response, scope, interaction_id)

        self._emit_outcome(interaction_id, normalized)
        return normalized

    def create_progress(self, name: str, total: int) -> ProgressSink:
        return ProgressSink(
            self._channel,
            operation_id=new_id("op"),
            name=str(name or ""),
            total=total,
            event_sink=self._event_sink,
        )

    def _normalize(
        self,
        request: InteractionRequest,
        response: Optional[InteractionResponse],
        scope: CancelScope,
        interaction_id: str,
    ) -> InteractionResponse:
        if response is None:
            return InteractionResponse.cancelled_response(timed_out=scope.timed_out)

        if response.cancelled or (scope.cancelled and not response.success):
            # The scope is the only authority on whether the deadline caused it.
            timed_out = scope.timed_out if scope.cancelled else False
            return InteractionResponse.cancelled_response(timed_out=timed_out)

        if not response.success:
            return InteractionResponse.cancelled_response()

        if request.type == InteractionType.MULTI_CHOICE and not response.custom_input:
            count = len(response.selected_values)
            if count < request.min_selections or count > request.max_selections:
                self._emit(
                    "interaction.rejected",
                    {
                        "interaction_id": interaction_id,
                        "reason": "selection_bounds",
                        "selected": count,
                        "min": request.min_selections,
                        "max": request.max_selections,
                    },
                )
                return InteractionResponse.cancelled_response()

        return response

    def _emit_outcome(self, interaction_id: str, response: InteractionResponse) -> None:
        if response.timed_out:
            event_type = "interaction.timed_out"
        elif response.cancelled:
            event_type = "interaction.cancelled"
        else:
            event_type = "interaction.resolved"
        self._emit(
            event_type,
            {
                "interaction_id": interaction_id,
                "outcome": response.outcome,
                "selected_count": len(response.selected_values),
                "has_custom_input": response.custom_input is not None,
            },
        )

    def _emit(self, event_type: str, payload: Dict[str, Any]) -> None:
        if self._event_sink is None:
            return
        try:
            self._event_sink(event_type, dict(payload))
        except Exception:
            return
