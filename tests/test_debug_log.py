from __future__ import annotations

import json

from promptgate.kernel.debug_log import DebugLogWriter


def _writer(tmp_path, **overrides) -> DebugLogWriter:
    values = dict(
        logs_dir=tmp_path / "logs",
        enabled=True,
        log_format="jsonl",
        max_file_bytes=1024 * 1024,
        max_files=2,
        redaction="default",
    )
    values.update(overrides)
    return DebugLogWriter(**values)


def _rows(tmp_path):
    text = (tmp_path / "logs" / "promptgate.log.jsonl").read_text(encoding="utf-8")
    return [json.loads(line) for line in text.strip().splitlines()]


def test_debug_log_rotation_respects_size_and_max_files(tmp_path):
    writer = _writer(tmp_path, max_file_bytes=256, redaction="none")

    for idx in range(40):
        writer.write_entry(
            level="info",
            component="bot",
            kind="diagnostic",
            message="rotation-{0}".format(idx),
            data={"blob": "x" * 80, "idx": idx},
        )

    status = writer.status()
    assert status["logs_enabled"] is True
    assert status["logs_active_size_bytes"] > 0
    assert status["logs_max_file_bytes"] == 256
    assert len(status["logs_rotated_files"]) <= 2
    assert not (tmp_path / "logs" / "promptgate.log.jsonl.3").exists()


def test_debug_log_fail_open_tracks_write_errors(tmp_path):
    blocked_path = tmp_path / "not-a-dir"
    blocked_path.write_text("file", encoding="utf-8")
    writer = DebugLogWriter(logs_dir=blocked_path, enabled=True, max_file_bytes=1024, max_files=2)

    writer.write_entry(level="info", component="bot", kind="diagnostic", message="should not raise")

    assert writer.status()["logs_write_errors"] >= 1


def test_default_redaction_masks_tokens_in_message_and_data(tmp_path):
    writer = _writer(tmp_path)

    writer.write_entry(
        level="info",
        component="telegram",
        kind="diagnostic",
        message="GET https://api.telegram.org/bot123456789:AAEhBP0av28XzWq6Zq-example-token/getMe token=abc123",
        data={"bot_token": "abc123", "nested": {"authorization": "Bearer hidden", "normal": "ok"}},
    )

    row = _rows(tmp_path)[0]
    assert "AAEhBP0av28XzWq6Zq" not in row["message"]
    assert "abc123" not in row["message"]
    assert row["data"]["bot_token"] == "***REDACTED***"
    assert row["data"]["nested"]["authorization"] == "***REDACTED***"
    assert row["data"]["nested"]["normal"] == "ok"


def test_strict_redaction_masks_every_leaf(tmp_path):
    writer = _writer(tmp_path, redaction="strict")

    writer.write_entry(level="info", component="cli", kind="diagnostic", message="m", data={"answer": "teal"})

    assert _rows(tmp_path)[0]["data"]["answer"] == "***REDACTED***"


def test_event_sink_maps_levels_and_ids(tmp_path):
    writer = _writer(tmp_path)
    sink = writer.event_sink("correlation", channel="telegram")

    sink("correlation.resolved", {"correlation_id": "1a2b3c4d"})
    sink("correlation.stale", {"reason": "unknown_id"})
    sink("outbox.failed", {"error": "HTTP 400"})

    rows = _rows(tmp_path)
    assert [row["level"] for row in rows] == ["info", "warn", "error"]
    assert rows[0]["correlation_id"] == "1a2b3c4d"
    assert rows[0]["channel"] == "telegram"
    assert rows[2]["event_type"] == "outbox.failed"
    assert writer.status()["logs_error_entries"] == 1


def test_disabled_writer_writes_nothing(tmp_path):
    writer = _writer(tmp_path, enabled=False)

    writer.write_entry(level="error", component="cli", kind="diagnostic", message="nope")

    assert not (tmp_path / "logs").exists()
    assert writer.status()["logs_enabled"] is False
