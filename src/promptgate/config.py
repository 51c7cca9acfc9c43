"""Configuration loading and directory resolution for promptgate."""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional

try:  # pragma: no cover - exercised on Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for Python 3.9/3.10
    import tomli as tomllib  # type: ignore[no-redef]

CONFIG_DIR_NAME = ".promptgate"
CONFIG_FILE_NAME = "config.toml"
LOGS_DIR_NAME = "logs"

ALLOWED_CHANNELS = ("console", "dialog", "telegram")
DEFAULT_CHANNEL = "console"
DEFAULT_TIMEOUT_SEC = 0.0
DEFAULT_TELEGRAM_POLL_TIMEOUT = 30
DEFAULT_TELEGRAM_RETRY_BACKOFF = 1.0
DEFAULT_TELEGRAM_API_BASE = "https://api.telegram.org"
DEFAULT_LOGS_ENABLED = True
DEFAULT_LOGS_FORMAT = "jsonl"
DEFAULT_LOGS_MAX_FILE_BYTES = 10 * 1024 * 1024
DEFAULT_LOGS_MAX_FILES = 5
DEFAULT_LOGS_REDACTION = "default"
ALLOWED_LOG_FORMATS = ("jsonl",)
ALLOWED_LOG_REDACTION = ("default", "none", "strict")

ENV_TELEGRAM_TOKEN = "PROMPTGATE_TELEGRAM_TOKEN"
ENV_TELEGRAM_CHAT_ID = "PROMPTGATE_TELEGRAM_CHAT_ID"


class ProjectConfigError(RuntimeError):
    """Raised when project configuration is missing or invalid."""


@dataclass
class ProjectConfig:
    default_channel: str = DEFAULT_CHANNEL
    default_timeout: float = DEFAULT_TIMEOUT_SEC
    telegram_bot_token: str = ""
    telegram_chat_id: int = 0
    telegram_poll_timeout: int = DEFAULT_TELEGRAM_POLL_TIMEOUT
    telegram_retry_backoff: float = DEFAULT_TELEGRAM_RETRY_BACKOFF
    telegram_api_base: str = DEFAULT_TELEGRAM_API_BASE
    logs_enabled: bool = DEFAULT_LOGS_ENABLED
    logs_format: str = DEFAULT_LOGS_FORMAT
    logs_max_file_bytes: int = DEFAULT_LOGS_MAX_FILE_BYTES
    logs_max_files: int = DEFAULT_LOGS_MAX_FILES
    logs_redaction: str = DEFAULT_LOGS_REDACTION


@dataclass
class Settings:
    """Resolved runtime settings for one CLI invocation."""

    project_root: Path
    config_root: Path
    channel: str = DEFAULT_CHANNEL
    default_timeout: Optional[float] = None
    telegram_bot_token: str = ""
    telegram_chat_id: int = 0
    telegram_poll_timeout: int = DEFAULT_TELEGRAM_POLL_TIMEOUT
    telegram_retry_backoff: float = DEFAULT_TELEGRAM_RETRY_BACKOFF
    telegram_api_base: str = DEFAULT_TELEGRAM_API_BASE
    logs_enabled: bool = DEFAULT_LOGS_ENABLED
    logs_format: str = DEFAULT_LOGS_FORMAT
    logs_max_file_bytes: int = DEFAULT_LOGS_MAX_FILE_BYTES
    logs_max_files: int = DEFAULT_LOGS_MAX_FILES
    logs_redaction: str = DEFAULT_LOGS_REDACTION

    @property
    def config_file(self) -> Path:
        return self.config_root / CONFIG_FILE_NAME

    @property
    def logs_dir(self) -> Path:
        return self.config_root / LOGS_DIR_NAME


def resolve_project_root(workspace_dir: Optional[Path] = None) -> Path:
    return (workspace_dir or Path.cwd()).resolve()


def resolve_project_config_root(workspace_dir: Optional[Path] = None) -> Path:
    return resolve_project_root(workspace_dir) / CONFIG_DIR_NAME


def project_config_exists(workspace_dir: Optional[Path] = None) -> bool:
    config_root = resolve_project_config_root(workspace_dir)
    return config_root.is_dir() and (config_root / CONFIG_FILE_NAME).is_file()


def normalize_channel(value: object) -> str:
    normalized = str(value or "").strip().lower()
    if normalized not in ALLOWED_CHANNELS:
        return DEFAULT_CHANNEL
    return normalized


def _safe_positive_int(value: object, default: int) -> int:
    try:
        converted = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return max(1, converted)


def _safe_positive_int_or_default(value: object, default: int) -> int:
    try:
        converted = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if converted <= 0:
        return default
    return converted


def _safe_non_negative_float(value: object, default: float) -> float:
    if isinstance(value, bool):
        return default
    try:
        converted = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if converted < 0:
        return default
    return converted


def _safe_int(value: object, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def _safe_bool(value: object, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
    return default


def _safe_log_format(value: object, default: str) -> str:
    normalized = str(value or default).strip().lower()
    if normalized not in ALLOWED_LOG_FORMATS:
        return default
    return normalized


def _safe_redaction(value: object, default: str) -> str:
    normalized = str(value or default).strip().lower()
    if normalized not in ALLOWED_LOG_REDACTION:
        return default
    return normalized


def _section(data: Mapping[str, object], key: str) -> Dict[str, object]:
    value = data.get(key)
    return dict(value) if isinstance(value, dict) else {}


def _parse_project_config_data(data: Dict[str, object]) -> ProjectConfig:
    channel = _section(data, "channel")
    interaction = _section(data, "interaction")
    telegram = _section(_section(data, "channels"), "telegram")
    logs = _section(_section(data, "runtime"), "logs")

    return ProjectConfig(
        default_channel=normalize_channel(channel.get("default")),
        default_timeout=_safe_non_negative_float(interaction.get("default_timeout"), DEFAULT_TIMEOUT_SEC),
        telegram_bot_token=str(telegram.get("bot_token") or "").strip(),
        telegram_chat_id=_safe_int(telegram.get("chat_id"), 0),
        telegram_poll_timeout=_safe_positive_int(telegram.get("poll_timeout"), DEFAULT_TELEGRAM_POLL_TIMEOUT),
        telegram_retry_backoff=_safe_non_negative_float(
            telegram.get("retry_backoff"),
            DEFAULT_TELEGRAM_RETRY_BACKOFF,
        ),
        telegram_api_base=str(telegram.get("api_base") or DEFAULT_TELEGRAM_API_BASE).strip(),
        logs_enabled=_safe_bool(logs.get("enabled"), DEFAULT_LOGS_ENABLED),
        logs_format=_safe_log_format(logs.get("format"), DEFAULT_LOGS_FORMAT),
        logs_max_file_bytes=_safe_positive_int_or_default(logs.get("max_file_bytes"), DEFAULT_LOGS_MAX_FILE_BYTES),
        logs_max_files=_safe_positive_int_or_default(logs.get("max_files"), DEFAULT_LOGS_MAX_FILES),
        logs_redaction=_safe_redaction(logs.get("redaction"), DEFAULT_LOGS_REDACTION),
    )


def _toml_string(value: str) -> str:
    return '"{0}"'.format(str(value or "").replace("\\", "\\\\").replace('"', '\\"'))


def _render_project_config(config: ProjectConfig) -> str:
    lines: List[str] = [
        "[channel]",
        "default = {0}".format(_toml_string(normalize_channel(config.default_channel))),
        "",
        "[interaction]",
        "default_timeout = {0}".format(_safe_non_negative_float(config.default_timeout, DEFAULT_TIMEOUT_SEC)),
        "",
        "[channels.telegram]",
        "bot_token = {0}".format(_toml_string(config.telegram_bot_token)),
        "chat_id = {0}".format(_safe_int(config.telegram_chat_id, 0)),
        "poll_timeout = {0}".format(_safe_positive_int(config.telegram_poll_timeout, DEFAULT_TELEGRAM_POLL_TIMEOUT)),
        "retry_backoff = {0}".format(
            _safe_non_negative_float(config.telegram_retry_backoff, DEFAULT_TELEGRAM_RETRY_BACKOFF)
        ),
        "api_base = {0}".format(_toml_string(config.telegram_api_base or DEFAULT_TELEGRAM_API_BASE)),
        "",
        "[runtime.logs]",
        "enabled = {0}".format(str(bool(config.logs_enabled)).lower()),
        "format = {0}".format(_toml_string(_safe_log_format(config.logs_format, DEFAULT_LOGS_FORMAT))),
        "max_file_bytes = {0}".format(
            _safe_positive_int_or_default(config.logs_max_file_bytes, DEFAULT_LOGS_MAX_FILE_BYTES)
        ),
        "max_files = {0}".format(_safe_positive_int_or_default(config.logs_max_files, DEFAULT_LOGS_MAX_FILES)),
        "redaction = {0}".format(_toml_string(_safe_redaction(config.logs_redaction, DEFAULT_LOGS_REDACTION))),
        "",
    ]
    return "\n".join(lines)


def initialize_project_config(workspace_dir: Optional[Path] = None, force: bool = False) -> Path:
    project_root = resolve_project_root(workspace_dir)
    config_root = resolve_project_config_root(project_root)
    config_file = config_root / CONFIG_FILE_NAME

    if config_root.exists():
        if not force:
            raise ProjectConfigError("configuration directory already exists: {0}".format(config_root))
        shutil.rmtree(config_root)

    (config_root / LOGS_DIR_NAME).mkdir(parents=True, exist_ok=True)
    config_file.write_text(_render_project_config(ProjectConfig()), encoding="utf-8")
    return config_root


def load_project_config(config_root: Optional[Path] = None, workspace_dir: Optional[Path] = None) -> ProjectConfig:
    resolved_root = (config_root or resolve_project_config_root(workspace_dir)).resolve()
    config_file = resolved_root / CONFIG_FILE_NAME
    if not resolved_root.is_dir() or not config_file.is_file():
        raise ProjectConfigError(
            "missing project config directory: {0}; run `promptgate init` first".format(resolved_root)
        )

    try:
        parsed = tomllib.loads(config_file.read_text(encoding="utf-8"))
    except Exception as exc:
        raise ProjectConfigError("invalid config file: {0}".format(config_file)) from exc

    if not isinstance(parsed, dict):
        raise ProjectConfigError("invalid config file: {0}".format(config_file))

    return _parse_project_config_data(parsed)


def save_project_config(
    config: ProjectConfig,
    config_root: Optional[Path] = None,
    workspace_dir: Optional[Path] = None,
) -> Path:
    resolved_root = (config_root or resolve_project_config_root(workspace_dir)).resolve()
    config_file = resolved_root / CONFIG_FILE_NAME
    if not resolved_root.is_dir():
        raise ProjectConfigError(
            "missing project config directory: {0}; run `promptgate init` first".format(resolved_root)
        )
    config_file.write_text(_render_project_config(config), encoding="utf-8")
    return config_file


def set_default_channel(channel_id: str, workspace_dir: Optional[Path] = None) -> str:
    normalized = str(channel_id or "").strip().lower()
    if normalized not in ALLOWED_CHANNELS:
        raise ProjectConfigError(
            "unsupported channel '{0}', expected one of: {1}".format(channel_id, "|".join(ALLOWED_CHANNELS))
        )
    config = load_project_config(workspace_dir=workspace_dir)
    config.default_channel = normalized
    save_project_config(config, workspace_dir=workspace_dir)
    return normalized


def load_settings(
    channel: Optional[str] = None,
    workspace_dir: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Resolve settings from project config, environment, and explicit overrides."""

    env = os.environ if environ is None else environ
    project_root = resolve_project_root(workspace_dir)
    config_root = resolve_project_config_root(project_root)
    project_config = load_project_config(config_root=config_root)

    if channel is not None and str(channel).strip().lower() not in ALLOWED_CHANNELS:
        raise ProjectConfigError(
            "unsupported channel '{0}', expected one of: {1}".format(channel, "|".join(ALLOWED_CHANNELS))
        )
    resolved_channel = normalize_channel(channel or project_config.default_channel)

    token = str(env.get(ENV_TELEGRAM_TOKEN) or "").strip() or project_config.telegram_bot_token
    chat_id = project_config.telegram_chat_id
    if str(env.get(ENV_TELEGRAM_CHAT_ID) or "").strip():
        chat_id = _safe_int(env.get(ENV_TELEGRAM_CHAT_ID), chat_id)

    timeout = project_config.default_timeout
    return Settings(
        project_root=project_root,
        config_root=config_root,
        channel=resolved_channel,
        default_timeout=timeout if timeout > 0 else None,
        telegram_bot_token=token,
        telegram_chat_id=chat_id,
        telegram_poll_timeout=project_config.telegram_poll_timeout,
        telegram_retry_backoff=project_config.telegram_retry_backoff,
        telegram_api_base=project_config.telegram_api_base,
        logs_enabled=project_config.logs_enabled,
        logs_format=project_config.logs_format,
        logs_max_file_bytes=project_config.logs_max_file_bytes,
        logs_max_files=project_config.logs_max_files,
        logs_redaction=project_config.logs_redaction,
    )
