from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

# Attributes every LogRecord carries; anything else arrived through `extra`.
_LOG_STD_KEYS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.now(tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _LOG_STD_KEYS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        # tuples serialize as arrays; anything else unknown falls back to str()
        return json.dumps(payload, ensure_ascii=False, default=str)


class ContextAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges call-site `extra` over the static fields."""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        kwargs["extra"] = {**(self.extra or {}), **(kwargs.get("extra") or {})}
        return msg, kwargs


def get_json_logger(
    name: str,
    *,
    log_path: Path | None = None,
    level: int = logging.INFO,
    static_fields: dict[str, Any] | None = None,
) -> ContextAdapter:
    """Create or fetch a JSON logger with optional file output and static fields.

    Env overrides (used only when `log_path` is None):
      - LOG_JSON_TO_FILE: when truthy ("1", "true", "yes"), log to a file.
      - LOG_FILE: path to JSONL log file (default: "logs/coordinator.jsonl").
      - LOG_LEVEL: level name applied when the logger is first created.

    Loggers live under the "coordinator." namespace so callers can tune the
    whole package at once. Returns a LoggerAdapter that injects
    `static_fields` into each record.
    """
    qualified = name if name.startswith("coordinator") else f"coordinator.{name}"
    logger = logging.getLogger(qualified)

    # Avoid duplicate handlers: add only if empty
    if not logger.handlers:
        env_level = os.getenv("LOG_LEVEL", "").strip().upper()
        if env_level and isinstance(logging.getLevelName(env_level), int):
            level = logging.getLevelName(env_level)
        logger.setLevel(level)

        effective_log_path = log_path
        if effective_log_path is None:
            _to_file = os.getenv("LOG_JSON_TO_FILE", "").strip().lower() in {"1", "true", "yes"}
            if _to_file:
                effective_log_path = Path(os.getenv("LOG_FILE", "logs/coordinator.jsonl"))

        if effective_log_path is not None:
            effective_log_path.parent.mkdir(parents=True, exist_ok=True)
            handler: logging.Handler = logging.FileHandler(effective_log_path, encoding='utf-8')
        else:
            handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())
        logger.addHandler(handler)
        logger.propagate = False

    fields = dict(static_fields or {})
    _cid = os.getenv("CORRELATION_ID", "").strip()
    if _cid and "correlation_id" not in fields:
        fields["correlation_id"] = _cid
    return ContextAdapter(logger, extra=fields)
