"""JSONL diagnostics log with size-based rotation and secret redaction."""

from __future__ import annotations

import json
import re
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from promptgate.kernel.types import EventSink, now_ms


_REDACTED = "***REDACTED***"
_SENSITIVE_KEY_RE = re.compile(
    r"(password|secret|token|authorization|cookie|api[_-]?key|access[_-]?key|private[_-]?key)",
    re.IGNORECASE,
)
_BEARER_RE = re.compile(r"(?i)\bbearer\s+([^\s,;]+)")
_KEY_VALUE_RE = re.compile(
    r"(?i)\b(api[_-]?key|access[_-]?key|token|secret|authorization|cookie|private[_-]?key)\b\s*[:=]\s*([^\s,;]+)"
)
# Telegram bot tokens: "<bot id>:<35 char secret>", also embedded in API URLs.
_BOT_TOKEN_RE = re.compile(r"\b(bot)?\d{6,}:[A-Za-z0-9_-]{30,}\b")

# Entries whose level is at or above this are considered failures in status().
_ERROR_LEVELS = {"error", "critical"}


class DebugLogWriter:
    """Best-effort JSONL writer; a failing disk never breaks an interaction."""

    def __init__(
        self,
        *,
        logs_dir: Path,
        enabled: bool,
        log_format: str = "jsonl",
        max_file_bytes: int = 10 * 1024 * 1024,
        max_files: int = 5,
        redaction: str = "default",
    ) -> None:
        self._logs_dir = Path(logs_dir)
        self._enabled = bool(enabled)
        # jsonl is the only supported format; anything else falls back to it.
        self._log_format = "jsonl"
        self._max_file_bytes = max(1, int(max_file_bytes or 0))
        self._max_files = max(1, int(max_files or 0))
        self._redaction = str(redaction or "default").strip().lower()
        if self._redaction not in {"none", "default", "strict"}:
            self._redaction = "default"
        self._write_errors = 0
        self._error_entries = 0
        self._lock = threading.Lock()
        if self._enabled:
            try:
                self._logs_dir.mkdir(parents=True, exist_ok=True)
            except OSError:
                self._write_errors += 1

    @classmethod
    def disabled(cls) -> "DebugLogWriter":
        return cls(logs_dir=Path("."), enabled=False)

    @property
    def active_log_file(self) -> Path:
        return self._logs_dir / "promptgate.log.jsonl"

    def write_entry(
        self,
        *,
        level: str,
        component: str,
        kind: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        channel: Optional[str] = None,
        correlation_id: Optional[str] = None,
        operation_id: Optional[str] = None,
        event_type: Optional[str] = None,
        ts_ms: Optional[int] = None,
    ) -> None:
        if str(level or "").lower() in _ERROR_LEVELS:
            with self._lock:
                self._error_entries += 1
        if not self._enabled:
            return

        record = {
            "ts_ms": int(ts_ms if ts_ms is not None else now_ms()),
            "level": str(level or "info"),
            "component": str(component or "orchestrator"),
            "kind": str(kind or "diagnostic"),
            "channel": str(channel or ""),
            "correlation_id": str(correlation_id or ""),
            "operation_id": str(operation_id or ""),
            "event_type": str(event_type or ""),
            "message": str(message or ""),
            "data": dict(data or {}),
        }

        if self._redaction != "none":
            record["message"] = self._redact_text(record["message"])
            if self._redaction == "strict":
                record["data"] = self._strict_redact(record["data"])
            else:
                record["data"] = self._redact_payload(record["data"])

        with self._lock:
            try:
                line = json.dumps(
                    record,
                    ensure_ascii=True,
                    separators=(",", ":"),
                    default=str,
                )
                payload = (line + "\n").encode("utf-8")
                self._logs_dir.mkdir(parents=True, exist_ok=True)
                self._rotate_if_needed_locked(len(payload))
                with self.active_log_file.open("ab") as fp:
                    fp.write(payload)
            except (OSError, TypeError, ValueError):
                self._write_errors += 1

    def event_sink(self, component: str, channel: str = "") -> EventSink:
        """Adapt the writer to the `(event_type, payload)` sink used by the orchestrator."""

        def sink(event_type: str, payload: Dict[str, Any]) -> None:
            level = "info"
            if event_type.endswith(".failed"):
                level = "error"
            elif event_type.endswith((".timed_out", ".cancelled", ".stale", ".rejected")):
                level = "warn"
            self.write_entry(
                level=level,
                component=component,
                kind="event",
                message="event:{0}".format(event_type),
                data=payload,
                channel=channel or str(payload.get("channel") or ""),
                correlation_id=str(payload.get("correlation_id") or ""),
                operation_id=str(payload.get("operation_id") or ""),
                event_type=event_type,
            )

        return sink

    def status(self) -> Dict[str, Any]:
        with self._lock:
            if not self._enabled:
                return {
                    "logs_enabled": False,
                    "logs_dir": str(self._logs_dir),
                    "logs_format": self._log_format,
                    "logs_active_file": str(self.active_log_file),
                    "logs_active_size_bytes": 0,
                    "logs_max_file_bytes": self._max_file_bytes,
                    "logs_max_files": self._max_files,
                    "logs_total_size_bytes": 0,
                    "logs_rotated_files": [],
                    "logs_write_errors": self._write_errors,
                    "logs_error_entries": self._error_entries,
                }

            active = self.active_log_file
            active_size = active.stat().st_size if active.exists() else 0
            rotated = []
            total_size = int(active_size)
            for index in range(1, self._max_files + 1):
                path = self._rotated_file(index)
                if not path.exists():
                    continue
                rotated.append(str(path))
                total_size += int(path.stat().st_size)

            return {
                "logs_enabled": True,
                "logs_dir": str(self._logs_dir),
                "logs_format": self._log_format,
                "logs_active_file": str(active),
                "logs_active_size_bytes": int(active_size),
                "logs_max_file_bytes": self._max_file_bytes,
                "logs_max_files": self._max_files,
                "logs_total_size_bytes": int(total_size),
                "logs_rotated_files": rotated,
                "logs_write_errors": int(self._write_errors),
                "logs_error_entries": int(self._error_entries),
            }

    def _rotate_if_needed_locked(self, incoming_size: int) -> None:
        current_size = 0
        if self.active_log_file.exists():
            current_size = int(self.active_log_file.stat().st_size)
        if current_size + int(incoming_size) <= self._max_file_bytes:
            return
        self._rotate_locked()

    def _rotate_locked(self) -> None:
        self._rotated_file(self._max_files).unlink(missing_ok=True)

        for index in range(self._max_files - 1, 0, -1):
            src = self._rotated_file(index)
            if src.exists():
                src.replace(self._rotated_file(index + 1))

        if self.active_log_file.exists():
            self.active_log_file.replace(self._rotated_file(1))

    def _rotated_file(self, index: int) -> Path:
        return Path("{0}.{1}".format(self.active_log_file, index))

    def _redact_payload(self, value: Any) -> Any:
        if isinstance(value, dict):
            out: Dict[str, Any] = {}
            for key, item in value.items():
                if _SENSITIVE_KEY_RE.search(str(key)):
                    out[key] = _REDACTED
                else:
                    out[key] = self._redact_payload(item)
            return out
        if isinstance(value, (list, tuple)):
            return [self._redact_payload(item) for item in value]
        if isinstance(value, str):
            return self._redact_text(value)
        return value

    def _strict_redact(self, value: Any) -> Any:
        if isinstance(value, dict):
            out: Dict[str, Any] = {}
            for key, item in value.items():
                if _SENSITIVE_KEY_RE.search(str(key)):
                    out[key] = _REDACTED
                elif isinstance(item, (dict, list, tuple)):
                    out[key] = self._strict_redact(item)
                else:
                    out[key] = _REDACTED
            return out
        if isinstance(value, (list, tuple)):
            return [self._strict_redact(item) for item in value]
        return _REDACTED

    @staticmethod
    def _redact_text(text: str) -> str:
        if not text:
            return text
        masked = _BEARER_RE.sub("Bearer {0}".format(_REDACTED), text)
        masked = _KEY_VALUE_RE.sub(
            lambda m: "{0}={1}".format(m.group(1), _REDACTED),
            masked,
        )
        return _BOT_TOKEN_RE.sub(_REDACTED, masked)
