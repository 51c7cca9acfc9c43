from __future__ import annotations

from pathlib import Path

import pytest

from promptgate.config import (
    ENV_TELEGRAM_CHAT_ID,
    ENV_TELEGRAM_TOKEN,
    ProjectConfigError,
    initialize_project_config,
    load_project_config,
    load_settings,
    set_default_channel,
)


def test_init_creates_config_and_logs_dir(tmp_path: Path):
    config_root = initialize_project_config(workspace_dir=tmp_path)

    assert (config_root / "config.toml").is_file()
    assert (config_root / "logs").is_dir()
    config = load_project_config(config_root=config_root)
    assert config.default_channel == "console"
    assert config.default_timeout == 0
    assert config.logs_redaction == "default"


def test_init_refuses_existing_without_force(tmp_path: Path):
    initialize_project_config(workspace_dir=tmp_path)

    with pytest.raises(ProjectConfigError):
        initialize_project_config(workspace_dir=tmp_path)
    initialize_project_config(workspace_dir=tmp_path, force=True)


def test_missing_config_raises(tmp_path: Path):
    with pytest.raises(ProjectConfigError) as excinfo:
        load_settings(workspace_dir=tmp_path)
    assert "promptgate init" in str(excinfo.value)


def test_invalid_values_fall_back_to_defaults(isolated_env):
    config_file = isolated_env["config_root"] / "config.toml"
    config_file.write_text(
        "\n".join(
            [
                "[channel]",
                'default = "pager"',
                "[interaction]",
                "default_timeout = -4",
                "[channels.telegram]",
                'chat_id = "12345"',
                'poll_timeout = "soon"',
                "[runtime.logs]",
                'enabled = "off"',
                'redaction = "loud"',
                "max_files = 0",
            ]
        ),
        encoding="utf-8",
    )

    settings = load_settings()

    assert settings.channel == "console"
    assert settings.default_timeout is None
    assert settings.telegram_chat_id == 12345
    assert settings.telegram_poll_timeout == 30
    assert settings.logs_enabled is False
    assert settings.logs_redaction == "default"
    assert settings.logs_max_files == 5


def test_broken_toml_is_config_error(isolated_env):
    (isolated_env["config_root"] / "config.toml").write_text("[channel\n", encoding="utf-8")

    with pytest.raises(ProjectConfigError):
        load_settings()


def test_environment_overrides_telegram_credentials(isolated_env):
    settings = load_settings(
        channel="telegram",
        environ={ENV_TELEGRAM_TOKEN: " env-token ", ENV_TELEGRAM_CHAT_ID: "777"},
    )

    assert settings.channel == "telegram"
    assert settings.telegram_bot_token == "env-token"
    assert settings.telegram_chat_id == 777
    assert settings.logs_dir == isolated_env["config_root"] / "logs"


def test_unknown_channel_override_is_rejected(isolated_env):
    with pytest.raises(ProjectConfigError):
        load_settings(channel="carrier-pigeon")


def test_set_default_channel_round_trips(isolated_env):
    assert set_default_channel("Dialog") == "dialog"

    assert load_settings(environ={}).channel == "dialog"
    with pytest.raises(ProjectConfigError):
        set_default_channel("fax")


def test_positive_default_timeout_is_kept(isolated_env):
    config_file = isolated_env["config_root"] / "config.toml"
    text = config_file.read_text(encoding="utf-8").replace("default_timeout = 0.0", "default_timeout = 45")
    config_file.write_text(text, encoding="utf-8")

    assert load_settings(environ={}).default_timeout == 45
