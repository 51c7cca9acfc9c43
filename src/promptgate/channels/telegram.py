"""Telegram Bot API transport for the chat-bot channel."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from promptgate.correlation.messages import (
    ActionEvent,
    ButtonRows,
    InboundEvent,
    OutboundMessage,
    SkippedEvent,
    TextEvent,
)
from promptgate.interaction.errors import ChannelConfigurationError, ChannelFailure
from promptgate.interaction.types import DEFAULT_TITLE

DEFAULT_API_BASE = "https://api.telegram.org"
CALLBACK_DATA_LIMIT = 64


def escape_html(text: str) -> str:
    if not text:
        return ""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def format_message(message: OutboundMessage) -> str:
    parts: List[str] = []
    title = str(message.title or "").strip()
    if title and title != DEFAULT_TITLE:
        parts.append("<b>{0}</b>".format(escape_html(title)))
    if message.body:
        parts.append(escape_html(message.body))
    if message.footer:
        parts.append("<i>{0}</i>".format(escape_html(message.footer)))
    return "\n\n".join(parts) or "…"


def inline_keyboard(rows: ButtonRows) -> Dict[str, Any]:
    keyboard = []
    for row in rows:
        buttons = []
        for button in row:
            if len(button.token.encode("utf-8")) > CALLBACK_DATA_LIMIT:
                raise ChannelFailure(
                    "action token exceeds {0} bytes: {1}".format(CALLBACK_DATA_LIMIT, button.token)
                )
            buttons.append({"text": button.label, "callback_data": button.token})
        keyboard.append(buttons)
    return {"inline_keyboard": keyboard}


class TelegramBotTransport:
    """Long-polls getUpdates and sends HTML messages with inline keyboards to one chat."""

    transport_name = "telegram"

    def __init__(
        self,
        bot_token: str,
        chat_id: int,
        *,
        api_base: str = DEFAULT_API_BASE,
        request_timeout: float = 15.0,
        poll_timeout: float = 30.0,
        http_transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        token = str(bot_token or "").strip()
        if not token:
            raise ChannelConfigurationError(
                "telegram bot token is missing; set channels.telegram.bot_token or PROMPTGATE_TELEGRAM_TOKEN"
            )
        try:
            chat = int(chat_id)
        except (TypeError, ValueError):
            chat = 0
        if chat == 0:
            raise ChannelConfigurationError(
                "telegram chat id is missing; set channels.telegram.chat_id or PROMPTGATE_TELEGRAM_CHAT_ID"
            )

        self.chat_id = chat
        self.api_base = str(api_base or DEFAULT_API_BASE).rstrip("/")
        self.request_timeout = float(request_timeout)
        self.poll_timeout = float(poll_timeout)
        self._client = httpx.Client(
            base_url="{0}/bot{1}".format(self.api_base, token),
            timeout=self.request_timeout,
            transport=http_transport,
        )

    def verify(self) -> Dict[str, Any]:
        try:
            result = self._call("getMe")
        except ChannelFailure as exc:
            raise ChannelConfigurationError("telegram bot token rejected: {0}".format(exc)) from exc
        if not isinstance(result, dict):
            raise ChannelConfigurationError("telegram getMe returned an unexpected payload")
        return {"id": result.get("id"), "username": result.get("username", "")}

    def get_me(self) -> Dict[str, Any]:
        return self.verify()

    def fetch_events(self, offset: int, timeout: float) -> List[InboundEvent]:
        wait = max(0, int(timeout))
        result = self._call(
            "getUpdates",
            {
                "offset": int(offset),
                "timeout": wait,
                "allowed_updates": ["message", "callback_query"],
            },
            # The HTTP read must outlive the server-side long poll.
            timeout=self.request_timeout + wait,
        )
        events: List[InboundEvent] = []
        for update in result or []:
            if not isinstance(update, dict) or "update_id" not in update:
                continue
            events.append(self._to_event(update))
        return events

    def send_message(self, message: OutboundMessage) -> str:
        payload: Dict[str, Any] = {
            "chat_id": self.chat_id,
            "text": format_message(message),
            "parse_mode": "HTML",
        }
        if message.buttons:
            payload["reply_markup"] = inline_keyboard(message.buttons)
        result = self._call("sendMessage", payload)
        if not isinstance(result, dict) or "message_id" not in result:
            raise ChannelFailure("telegram sendMessage returned no message id")
        return str(result["message_id"])

    def edit_message(self, message_id: str, message: OutboundMessage) -> None:
        payload: Dict[str, Any] = {
            "chat_id": self.chat_id,
            "message_id": int(message_id),
            "text": format_message(message),
            "parse_mode": "HTML",
            "reply_markup": inline_keyboard(message.buttons),
        }
        try:
            self._call("editMessageText", payload)
        except ChannelFailure as exc:
            if "message is not modified" in str(exc):
                return
            raise

    def answer_action(self, action_id: str, text: str = "") -> None:
        payload: Dict[str, Any] = {"callback_query_id": str(action_id)}
        if text:
            payload["text"] = text
        self._call("answerCallbackQuery", payload)

    def close(self) -> None:
        self._client.close()

    def _to_event(self, update: Dict[str, Any]) -> InboundEvent:
        update_id = int(update["update_id"])
        callback = update.get("callback_query")
        if isinstance(callback, dict):
            message = callback.get("message") or {}
            if self._chat_of(message) != self.chat_id:
                return SkippedEvent(update_id, "foreign_chat")
            return ActionEvent(
                event_id=update_id,
                token=str(callback.get("data") or ""),
                action_id=str(callback.get("id") or ""),
                message_id=str(message.get("message_id") or ""),
            )

        message = update.get("message")
        if isinstance(message, dict):
            if self._chat_of(message) != self.chat_id:
                return SkippedEvent(update_id, "foreign_chat")
            text = message.get("text")
            if not isinstance(text, str):
                return SkippedEvent(update_id, "not_text")
            return TextEvent(
                event_id=update_id,
                text=text,
                message_id=str(message.get("message_id") or ""),
            )
        return SkippedEvent(update_id, "unsupported_update")

    @staticmethod
    def _chat_of(message: Dict[str, Any]) -> Optional[int]:
        chat = message.get("chat") if isinstance(message, dict) else None
        if not isinstance(chat, dict):
            return None
        try:
            return int(chat.get("id"))
        except (TypeError, ValueError):
            return None

    def _call(
        self,
        method: str,
        payload: Optional[Dict[str, Any]] = None,
        *,
        timeout: Optional[float] = None,
    ) -> Any:
        try:
            resp = self._client.post(
                "/{0}".format(method),
                json=payload or {},
                timeout=timeout if timeout is not None else self.request_timeout,
            )
        except httpx.HTTPError as exc:
            raise ChannelFailure("telegram {0} failed: {1}".format(method, type(exc).__name__)) from exc

        try:
            data = resp.json()
        except ValueError as exc:
            raise ChannelFailure(
                "telegram {0} returned HTTP {1} without JSON".format(method, resp.status_code)
            ) from exc
        if not isinstance(data, dict) or not data.get("ok"):
            description = ""
            if isinstance(data, dict):
                description = str(data.get("description") or "")
            raise ChannelFailure(
                "telegram {0} failed: HTTP {1} {2}".format(method, resp.status_code, description).strip()
            )
        return data.get("result")
