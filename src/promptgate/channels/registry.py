"""Channel registry: maps configured channel ids to render channel factories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List

from promptgate.channels.base import RenderChannel
from promptgate.channels.bot import BotChannel
from promptgate.channels.console import ConsoleChannel
from promptgate.channels.dialog import DialogChannel
from promptgate.channels.telegram import TelegramBotTransport
from promptgate.config import Settings
from promptgate.interaction.errors import ChannelConfigurationError
from promptgate.kernel.debug_log import DebugLogWriter


@dataclass(frozen=True)
class ChannelRegistration:
    """Metadata + factory for one render channel."""

    channel_id: str
    display_name: str
    description: str
    factory: Callable[[Settings, DebugLogWriter], RenderChannel]


def _build_console(settings: Settings, debug_log: DebugLogWriter) -> RenderChannel:
    return ConsoleChannel()


def _build_dialog(settings: Settings, debug_log: DebugLogWriter) -> RenderChannel:
    # Bound to a host app by run_dialog_session; see promptgate.cli.
    return DialogChannel()


def _build_telegram(settings: Settings, debug_log: DebugLogWriter) -> RenderChannel:
    transport = TelegramBotTransport(
        settings.telegram_bot_token,
        settings.telegram_chat_id,
        api_base=settings.telegram_api_base,
        poll_timeout=settings.telegram_poll_timeout,
    )
    return BotChannel(
        transport,
        poll_timeout=settings.telegram_poll_timeout,
        retry_backoff=settings.telegram_retry_backoff,
        event_sink=debug_log.event_sink("channel", channel="telegram"),
    )


def _registrations() -> Dict[str, ChannelRegistration]:
    return {
        "console": ChannelRegistration(
            channel_id="console",
            display_name="Console",
            description="Blocking terminal prompts on stdin/stdout",
            factory=_build_console,
        ),
        "dialog": ChannelRegistration(
            channel_id="dialog",
            display_name="Dialog",
            description="Modal dialogs in a Textual host app",
            factory=_build_dialog,
        ),
        "telegram": ChannelRegistration(
            channel_id="telegram",
            display_name="Telegram",
            description="Inline-keyboard prompts via the Telegram Bot API",
            factory=_build_telegram,
        ),
    }


def list_channel_registrations() -> List[ChannelRegistration]:
    """List all built-in channel registrations."""

    return [entry for _, entry in sorted(_registrations().items())]


def get_channel_registration(channel_id: str) -> ChannelRegistration:
    """Resolve one registration by channel id."""

    normalized = str(channel_id or "").strip().lower()
    registrations = _registrations()
    if normalized not in registrations:
        raise ChannelConfigurationError("unsupported channel: {0}".format(channel_id))
    return registrations[normalized]


def build_channel(settings: Settings, debug_log: DebugLogWriter) -> RenderChannel:
    """Construct the configured channel; raises ChannelConfigurationError when unusable."""

    registration = get_channel_registration(settings.channel)
    channel = registration.factory(settings, debug_log)
    debug_log.write_entry(
        level="info",
        component="registry",
        kind="lifecycle",
        message="channel built",
        channel=registration.channel_id,
        data={"display_name": registration.display_name},
    )
    return channel
