"""Typer CLI entrypoints for promptgate."""

from __future__ import annotations

import json
import time
from typing import Any, Callable, List, Optional

import typer

from promptgate.channels.dialog import DialogChannel, run_dialog_session
from promptgate.channels.registry import build_channel, list_channel_registrations
from promptgate.config import (
    ProjectConfigError,
    Settings,
    initialize_project_config,
    load_settings,
    project_config_exists,
    resolve_project_config_root,
)
from promptgate.interaction.errors import ChannelConfigurationError
from promptgate.interaction.orchestrator import InteractionOrchestrator
from promptgate.interaction.types import DEFAULT_PLACEHOLDER, DEFAULT_TITLE, InteractionOption
from promptgate.kernel.debug_log import DebugLogWriter
from promptgate.tools import CANCELLED, InteractionTools
from promptgate.ui.render import render_doctor_text, render_notice

app = typer.Typer(
    no_args_is_help=True,
    help="promptgate: ask a human for a decision on the terminal, a dialog, or a chat bot",
)

_CHANNEL_HELP = "Channel override: console|dialog|telegram"
_TIMEOUT_HELP = "Seconds to wait for an answer (0 uses the configured default)"
_OPTION_HELP = "Option as label=value (repeatable)"


def _missing_config_message() -> str:
    return render_notice(
        "error",
        "Missing project config directory {0}. Run `promptgate init` first.".format(
            resolve_project_config_root()
        ),
    )


def _require_project_config() -> None:
    if project_config_exists():
        return
    typer.echo(_missing_config_message(), err=True)
    raise typer.Exit(code=2)


def _load_settings_or_exit(channel: Optional[str]) -> Settings:
    _require_project_config()
    try:
        return load_settings(channel=channel)
    except ProjectConfigError as exc:
        typer.echo(render_notice("error", str(exc)), err=True)
        raise typer.Exit(code=2)


def _debug_log(settings: Settings) -> DebugLogWriter:
    return DebugLogWriter(
        logs_dir=settings.logs_dir,
        enabled=settings.logs_enabled,
        log_format=settings.logs_format,
        max_file_bytes=settings.logs_max_file_bytes,
        max_files=settings.logs_max_files,
        redaction=settings.logs_redaction,
    )


def _parse_options(raw: Optional[List[str]], defaults: Optional[List[str]]) -> List[InteractionOption]:
    chosen = set(defaults or [])
    options: List[InteractionOption] = []
    for item in raw or []:
        text = str(item or "").strip()
        if not text:
            continue
        label, sep, value = text.partition("=")
        label = label.strip()
        value = value.strip() if sep else label
        options.append(InteractionOption(label=label, value=value, is_default=value in chosen))
    if not options:
        typer.echo(render_notice("error", "At least one --option is required."), err=True)
        raise typer.Exit(code=2)
    return options


def _timeout(value: float) -> Optional[float]:
    return value if value and value > 0 else None


def _with_tools(channel: Optional[str], run: Callable[[InteractionTools], Any]) -> Any:
    """Build the configured channel, run one operation, and always release the channel."""

    settings = _load_settings_or_exit(channel)
    debug_log = _debug_log(settings)
    try:
        render_channel = build_channel(settings, debug_log)
        render_channel.start()
    except ChannelConfigurationError as exc:
        debug_log.write_entry(
            level="error",
            component="cli",
            kind="lifecycle",
            message="channel unavailable",
            channel=settings.channel,
            data={"error": str(exc)},
        )
        typer.echo(render_notice("error", str(exc)), err=True)
        raise typer.Exit(code=2)

    def task(active_channel: Any) -> Any:
        orchestrator = InteractionOrchestrator(
            active_channel,
            event_sink=debug_log.event_sink("orchestrator", channel=settings.channel),
            default_timeout=settings.default_timeout,
        )
        tools = InteractionTools(orchestrator)
        try:
            return run(tools)
        finally:
            tools.close()

    try:
        if isinstance(render_channel, DialogChannel):
            return run_dialog_session(task, channel=render_channel)
        return task(render_channel)
    finally:
        render_channel.close()


def _finish(result: str) -> None:
    typer.echo(result)
    if result == CANCELLED:
        raise typer.Exit(code=1)


@app.command("init")
def init_cmd(
    force: bool = typer.Option(
        False,
        "--force",
        help="Recreate .promptgate (deletes the existing directory first)",
    ),
) -> None:
    try:
        config_root = initialize_project_config(force=force)
    except ProjectConfigError as exc:
        typer.echo(render_notice("error", str(exc)), err=True)
        raise typer.Exit(code=2)

    typer.echo(render_notice("success", "Initialized project config at: {0}".format(config_root)))


@app.command("doctor")
def doctor_cmd(
    output_format: str = typer.Option("json", "--format", help="Output format: json|text"),
) -> None:
    normalized_format = output_format.strip().lower()
    if normalized_format not in {"json", "text"}:
        typer.echo(render_notice("error", "Unsupported format: {0}".format(output_format)), err=True)
        raise typer.Exit(code=2)

    settings = _load_settings_or_exit(None)
    channels = {}
    for registration in list_channel_registrations():
        status = "ok"
        if registration.channel_id == "telegram":
            if not settings.telegram_bot_token:
                status = "missing bot_token"
            elif not settings.telegram_chat_id:
                status = "missing chat_id"
        channels[registration.channel_id] = status

    report = {
        "workspace_dir": str(settings.project_root),
        "config_file": str(settings.config_file),
        "default_channel": settings.channel,
        "default_timeout": settings.default_timeout or 0,
        "channels": channels,
    }
    report.update(_debug_log(settings).status())
    if normalized_format == "json":
        typer.echo(json.dumps(report, ensure_ascii=True, indent=2))
        return
    typer.echo(render_doctor_text(report))


@app.command("notify")
def notify_cmd(
    message: str = typer.Argument(..., help="Notification text"),
    title: str = typer.Option(DEFAULT_TITLE, "--title"),
    wait: bool = typer.Option(False, "--wait", help="Block until the notice is acknowledged"),
    channel: Optional[str] = typer.Option(None, "--channel", help=_CHANNEL_HELP),
    timeout: float = typer.Option(0, "--timeout", help=_TIMEOUT_HELP),
) -> None:
    result = _with_tools(
        channel,
        lambda tools: tools.notify(message, title=title, wait_confirmation=wait, timeout=_timeout(timeout)),
    )
    typer.echo(result)


@app.command("confirm")
def confirm_cmd(
    message: str = typer.Argument(..., help="Yes/no question"),
    title: str = typer.Option(DEFAULT_TITLE, "--title"),
    cancellable: bool = typer.Option(True, "--cancellable/--no-cancel"),
    channel: Optional[str] = typer.Option(None, "--channel", help=_CHANNEL_HELP),
    timeout: float = typer.Option(0, "--timeout", help=_TIMEOUT_HELP),
) -> None:
    _finish(
        _with_tools(
            channel,
            lambda tools: tools.confirm(
                message,
                title=title,
                is_cancellable=cancellable,
                timeout=_timeout(timeout),
            ),
        )
    )


@app.command("choose")
def choose_cmd(
    message: str = typer.Argument(..., help="Question text"),
    option: Optional[List[str]] = typer.Option(None, "--option", help=_OPTION_HELP),
    default: Optional[List[str]] = typer.Option(None, "--default", help="Default option value"),
    allow_other: bool = typer.Option(False, "--allow-other", help="Also accept a typed answer"),
    title: str = typer.Option(DEFAULT_TITLE, "--title"),
    channel: Optional[str] = typer.Option(None, "--channel", help=_CHANNEL_HELP),
    timeout: float = typer.Option(0, "--timeout", help=_TIMEOUT_HELP),
) -> None:
    options = _parse_options(option, default)
    _finish(
        _with_tools(
            channel,
            lambda tools: tools.choose_option(
                message,
                options,
                title=title,
                allow_custom_input=allow_other,
                timeout=_timeout(timeout),
            ),
        )
    )


@app.command("choose-many")
def choose_many_cmd(
    message: str = typer.Argument(..., help="Question text"),
    option: Optional[List[str]] = typer.Option(None, "--option", help=_OPTION_HELP),
    default: Optional[List[str]] = typer.Option(None, "--default", help="Pre-selected option value"),
    min_selections: int = typer.Option(0, "--min"),
    max_selections: int = typer.Option(1, "--max"),
    title: str = typer.Option(DEFAULT_TITLE, "--title"),
    channel: Optional[str] = typer.Option(None, "--channel", help=_CHANNEL_HELP),
    timeout: float = typer.Option(0, "--timeout", help=_TIMEOUT_HELP),
) -> None:
    options = _parse_options(option, default)
    values = _with_tools(
        channel,
        lambda tools: tools.choose_multiple(
            message,
            options,
            title=title,
            min_selections=min_selections,
            max_selections=max_selections,
            timeout=_timeout(timeout),
        ),
    )
    typer.echo(json.dumps(values, ensure_ascii=False))


@app.command("ask")
def ask_cmd(
    message: str = typer.Argument(..., help="Question text"),
    placeholder: str = typer.Option(DEFAULT_PLACEHOLDER, "--placeholder"),
    title: str = typer.Option(DEFAULT_TITLE, "--title"),
    channel: Optional[str] = typer.Option(None, "--channel", help=_CHANNEL_HELP),
    timeout: float = typer.Option(0, "--timeout", help=_TIMEOUT_HELP),
) -> None:
    text = _with_tools(
        channel,
        lambda tools: tools.ask_text(message, title=title, placeholder=placeholder, timeout=_timeout(timeout)),
    )
    typer.echo(text)


@app.command("choose-or-type")
def choose_or_type_cmd(
    message: str = typer.Argument(..., help="Question text"),
    option: Optional[List[str]] = typer.Option(None, "--option", help=_OPTION_HELP),
    default: Optional[List[str]] = typer.Option(None, "--default", help="Default option value"),
    placeholder: str = typer.Option(DEFAULT_PLACEHOLDER, "--placeholder"),
    title: str = typer.Option(DEFAULT_TITLE, "--title"),
    channel: Optional[str] = typer.Option(None, "--channel", help=_CHANNEL_HELP),
    timeout: float = typer.Option(0, "--timeout", help=_TIMEOUT_HELP),
) -> None:
    options = _parse_options(option, default)
    _finish(
        _with_tools(
            channel,
            lambda tools: tools.choose_with_custom_text(
                message,
                options,
                title=title,
                placeholder=placeholder,
                timeout=_timeout(timeout),
            ),
        )
    )


@app.command("progress")
def progress_cmd(
    name: str = typer.Argument("demo", help="Operation name"),
    total: int = typer.Option(5, "--total", min=1),
    interval: float = typer.Option(0.5, "--interval", min=0.0, help="Seconds between steps"),
    status: str = typer.Option("Working", "--status"),
    channel: Optional[str] = typer.Option(None, "--channel", help=_CHANNEL_HELP),
) -> None:
    """Drive a progress surface from 0 to --total."""

    def run(tools: InteractionTools) -> str:
        for step in range(total + 1):
            tools.report_progress(name, step, total, "{0} ({1}/{2})".format(status, step, total))
            if step < total:
                time.sleep(interval)
        return tools.report_progress(name, total, total, status, done=True)

    typer.echo(_with_tools(channel, run))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
