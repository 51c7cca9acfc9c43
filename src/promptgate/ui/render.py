"""Presentation helpers for promptgate CLI and console output."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence, TextIO

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from promptgate.interaction.types import InteractionOption, InteractionRequest

BAR_BLOCKS = 10


def render_notice(level: str, text: str) -> str:
    prefix_map = {
        "info": "Info",
        "warn": "Warning",
        "error": "Error",
        "success": "Success",
    }
    prefix = prefix_map.get(level, "Info")
    return "{0}: {1}".format(prefix, text)


def _is_tty(stream: TextIO, forced: Optional[bool]) -> bool:
    if forced is not None:
        return forced
    isatty = getattr(stream, "isatty", None)
    if callable(isatty):
        try:
            return bool(isatty())
        except Exception:
            return False
    return False


def progress_percent(current: int, total: int) -> int:
    if total <= 0:
        return 0
    return max(0, min(100, int(current) * 100 // int(total)))


def progress_bar(current: int, total: int, *, blocks: int = BAR_BLOCKS) -> str:
    """`██████░░░░ 60%`"""

    percent = progress_percent(current, total)
    filled = percent * blocks // 100
    return "{0}{1} {2}%".format("█" * filled, "░" * (blocks - filled), percent)


def progress_line(status: str, current: int, total: int, *, blocks: int = BAR_BLOCKS) -> str:
    """`status: [███░░] 40% (4/10)`"""

    percent = progress_percent(current, total)
    filled = percent * blocks // 100
    return "{0}: [{1}{2}] {3}% ({4}/{5})".format(
        status or "Progress",
        "█" * filled,
        "░" * (blocks - filled),
        percent,
        int(current),
        int(total),
    )


def option_lines(
    options: Sequence[InteractionOption],
    *,
    marked: Iterable[str] = (),
    multi: bool = False,
) -> List[str]:
    chosen = set(marked)
    lines = []
    for index, option in enumerate(options, start=1):
        if multi:
            mark = "[X]" if option.value in chosen else "[ ]"
        else:
            mark = "(*)" if option.value in chosen else "( )"
        line = "{0}. {1} {2}".format(index, mark, option.label)
        if option.description:
            line = "{0} - {1}".format(line, option.description)
        lines.append(line)
    return lines


def render_prompt(
    request: InteractionRequest,
    body_lines: Sequence[str],
    stream: TextIO,
    is_tty: Optional[bool] = None,
) -> None:
    tty = _is_tty(stream, is_tty)
    content = "\n".join([request.message, ""] + list(body_lines)) if body_lines else request.message

    if tty:
        console = Console(file=stream, highlight=False, soft_wrap=True)
        console.print(
            Panel(
                Text(content),
                title=request.title,
                border_style="cyan",
                box=box.ROUNDED,
            )
        )
        return

    stream.write("== {0} ==\n".format(request.title))
    stream.write(content + "\n")
    stream.flush()


def render_doctor_text(report: Dict[str, Any]) -> str:
    lines = [
        "Doctor Report",
        "workspace_dir={0}".format(report.get("workspace_dir", "")),
        "config_file={0}".format(report.get("config_file", "")),
        "",
        "Channels",
        "default_channel={0}".format(report.get("default_channel", "")),
    ]
    channels = report.get("channels")
    if isinstance(channels, dict):
        for channel_id in sorted(channels.keys()):
            lines.append("{0}={1}".format(channel_id, channels[channel_id]))
    lines.extend(
        [
            "default_timeout={0}".format(report.get("default_timeout") or 0),
            "",
            "Debug Logs",
            "logs_enabled={0}".format(bool(report.get("logs_enabled"))),
            "logs_active_size_bytes={0} logs_total_size_bytes={1}".format(
                int(report.get("logs_active_size_bytes") or 0),
                int(report.get("logs_total_size_bytes") or 0),
            ),
            "logs_write_errors={0}".format(int(report.get("logs_write_errors") or 0)),
        ]
    )
    logs_active_file = report.get("logs_active_file")
    if logs_active_file:
        lines.append("logs_active_file={0}".format(logs_active_file))
    return "\n".join(lines)
