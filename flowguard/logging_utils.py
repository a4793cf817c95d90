# Author: Zhongkai Fu (fuzhongkai@gmail.com)
# License: BSD 3-Clause License

"""Utility helpers for console + structured logging with trace context."""

from __future__ import annotations

import contextlib
import contextvars
import json
import os
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional

# Basic ANSI color codes for a slightly nicer CLI experience without extra deps.
RESET = "\033[0m"
COLORS = {
    "blue": "\033[94m",
    "cyan": "\033[96m",
    "green": "\033[92m",
    "yellow": "\033[93m",
    "red": "\033[91m",
    "magenta": "\033[95m",
    "dim": "\033[2m",
}

ICONS = {
    "INFO": "ℹ️",
    "SUCCESS": "✅",
    "WARN": "⚠️",
    "ERROR": "❌",
    "DEBUG": "🔍",
}

LEVEL_ORDER = {"DEBUG": 10, "INFO": 20, "SUCCESS": 20, "WARN": 30, "ERROR": 40}


def _default_log_file() -> Path | None:
    if env_path := os.environ.get("FLOWGUARD_LOG_FILE"):
        return Path(env_path)

    log_dir = os.environ.get("FLOWGUARD_LOG_DIR")
    if not log_dir:
        return None
    ts = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return Path(log_dir) / f"flowguard_{ts}.log"


def _threshold_from_env() -> int:
    level = os.environ.get("FLOWGUARD_LOG_LEVEL", "INFO").upper()
    return LEVEL_ORDER.get(level, LEVEL_ORDER["INFO"])


LOG_FILE_PATH: Path | None = _default_log_file()
LOG_THRESHOLD = _threshold_from_env()
_TRACE_ID: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "trace_id", default=None
)
_SPAN_ID: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "span_id", default=None
)
_SPAN_NAME: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "span_name", default=None
)
_RUN_ID: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "run_id", default=None
)


class TraceContext:
    """Small container for correlating logs across modules."""

    def __init__(self, trace_id: str, span_id: str, span_name: str | None = None):
        self.trace_id = trace_id
        self.span_id = span_id
        self.span_name = span_name

    @classmethod
    def create(
        cls, trace_id: str | None = None, span_id: str | None = None, span_name: str | None = None
    ) -> "TraceContext":
        return cls(trace_id or _generate_trace_id(), span_id or _generate_span_id(), span_name)

    def child(self, span_name: str | None = None) -> "TraceContext":
        return TraceContext(self.trace_id, _generate_span_id(), span_name or self.span_name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "trace_id": self.trace_id,
            "span_id": self.span_id,
            "span_name": self.span_name,
        }


def _generate_trace_id() -> str:
    return uuid.uuid4().hex


def _generate_span_id() -> str:
    return uuid.uuid4().hex


def current_trace_context() -> TraceContext | None:
    trace_id = _TRACE_ID.get()
    if not trace_id:
        return None
    return TraceContext(trace_id, _SPAN_ID.get() or _generate_span_id(), _SPAN_NAME.get())


def current_run_id() -> str | None:
    return _RUN_ID.get()


def configure_run_logging(
    run_id: str | None = None,
    log_file: str | Path | None = None,
    level: str | None = None,
) -> contextvars.Token[str | None] | None:
    """Configure per-run context for structured logs.

    Parameters
    ----------
    run_id:
        Identifier of the validation run. When provided, it is injected into
        every structured log record emitted by :func:`log_event`.
    log_file:
        Optional JSONL destination. Without one (and without
        ``FLOWGUARD_LOG_FILE``/``FLOWGUARD_LOG_DIR``) records are only printed.
    level:
        Minimum console level (``DEBUG``, ``INFO``, ``WARN``, ``ERROR``).
    """

    token: contextvars.Token[str | None] | None = None
    if run_id is not None:
        token = _RUN_ID.set(run_id)

    global LOG_FILE_PATH, LOG_THRESHOLD
    if log_file is not None:
        LOG_FILE_PATH = Path(log_file)
    if level is not None:
        LOG_THRESHOLD = LEVEL_ORDER.get(level.upper(), LOG_THRESHOLD)

    return token


@contextlib.contextmanager
def use_trace_context(context: TraceContext | None):
    if context is None:
        yield None
        return

    token_trace = _TRACE_ID.set(context.trace_id)
    token_span = _SPAN_ID.set(context.span_id)
    token_name = _SPAN_NAME.set(context.span_name)
    try:
        yield context
    finally:
        _TRACE_ID.reset(token_trace)
        _SPAN_ID.reset(token_span)
        _SPAN_NAME.reset(token_name)


@contextlib.contextmanager
def child_span(span_name: str | None = None):
    parent = current_trace_context() or TraceContext.create()
    child_ctx = parent.child(span_name=span_name)
    with use_trace_context(child_ctx):
        yield child_ctx

LEVEL_COLOR = {
    "INFO": COLORS["cyan"],
    "SUCCESS": COLORS["green"],
    "WARN": COLORS["yellow"],
    "ERROR": COLORS["red"],
    "DEBUG": COLORS["magenta"],
}


def _timestamp() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def _format_lines(message: str) -> str:
    lines = message.split("\n")
    if len(lines) <= 1:
        return message
    # Align multi-line messages under the prefix for readability
    return ("\n" + " " * 18).join(lines)


def console_log(level: str, message: str) -> None:
    level = level.upper()
    if LEVEL_ORDER.get(level, LEVEL_ORDER["INFO"]) < LOG_THRESHOLD:
        return
    color = LEVEL_COLOR.get(level, "")
    icon = ICONS.get(level, "➡️")
    trace = current_trace_context()
    trace_prefix = ""
    if trace:
        trace_prefix = f" [trace={trace.trace_id} span={trace.span_id}]"
    prefix = f"{color}{icon} [{level:>5}] {_timestamp()}{trace_prefix} |{RESET} "
    _safe_print(prefix + _format_lines(message))


def _safe_print(text: str) -> None:
    """Print text while tolerating encoding issues on non-UTF-8 consoles."""

    output = text if text.endswith("\n") else text + "\n"
    encoding = getattr(sys.stdout, "encoding", None) or "utf-8"
    buffer = getattr(sys.stdout, "buffer", None)
    if buffer is None:
        sys.stdout.write(output)
        return
    try:
        buffer.write(output.encode(encoding, errors="replace"))
    except LookupError:
        # Unknown codec name on a misconfigured stream.
        buffer.write(output.encode("utf-8", errors="replace"))
    try:
        sys.stdout.flush()
    except (OSError, ValueError):
        pass


def log_info(*messages: str) -> None:
    """Log informational messages.

    Accepts multiple message parts for convenience and joins them with spaces
    before delegating to :func:`console_log`.
    """

    message = " ".join(str(part) for part in messages) if messages else ""
    console_log("INFO", message)


def log_success(message: str) -> None:
    console_log("SUCCESS", message)


def log_warn(message: str) -> None:
    console_log("WARN", message)


def log_error(message: str) -> None:
    console_log("ERROR", message)


def log_debug(message: str) -> None:
    console_log("DEBUG", message)


def log_json(label: str, data: Mapping[str, Any] | list[Any] | Any) -> None:
    try:
        payload = json.dumps(data, ensure_ascii=False, indent=2)
    except (TypeError, ValueError):
        payload = str(data)
    console_log("DEBUG", f"{label}:\n{payload}")


def _persist_record(record: dict[str, Any]) -> None:
    if LOG_FILE_PATH is None:
        return
    LOG_FILE_PATH.parent.mkdir(parents=True, exist_ok=True)
    with open(LOG_FILE_PATH, "a", encoding="utf-8") as fp:
        fp.write(json.dumps(record, ensure_ascii=False) + "\n")


def log_event(
    message: str,
    payload: Mapping[str, Any] | None = None,
    *,
    level: str = "INFO",
    workflow_run_id: str | None = None,
    node_id: str | None = None,
    context: TraceContext | None = None,
) -> None:
    """Emit machine-readable JSON logs with consistent fields.

    The output is a JSON line containing the timestamp, level, workflow_run_id,
    node_id and message so that downstream tools can easily parse and
    aggregate logs.
    """

    if LEVEL_ORDER.get(level.upper(), LEVEL_ORDER["INFO"]) < LOG_THRESHOLD:
        return

    ctx = context or current_trace_context()
    record = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": level.upper(),
        "workflow_run_id": workflow_run_id or current_run_id(),
        "node_id": node_id,
        "message": message,
    }
    if payload:
        record["payload"] = dict(payload)
        if record["node_id"] is None:
            record["node_id"] = payload.get("node_id")
    if ctx:
        record.update(ctx.to_dict())

    json_line = json.dumps(record, ensure_ascii=False, default=str)
    _safe_print(json_line)
    _persist_record(record)


__all__ = [
    "TraceContext",
    "child_span",
    "configure_run_logging",
    "console_log",
    "current_run_id",
    "current_trace_context",
    "log_debug",
    "log_error",
    "log_event",
    "log_info",
    "log_json",
    "log_success",
    "log_warn",
    "use_trace_context",
]
