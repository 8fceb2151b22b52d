from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from services.config import getenv_int, getenv_str

# Longest string kept per structured field; statement text must never land whole in a log line
MAX_FIELD_CHARS = getenv_int("INGEST_LOG_FIELD_CHARS", 200)


def _bounded(value: Any) -> Any:
    if isinstance(value, str) and len(value) > MAX_FIELD_CHARS:
        return value[:MAX_FIELD_CHARS] + f"...(+{len(value) - MAX_FIELD_CHARS})"
    return value


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
        }
        if hasattr(record, "extra") and isinstance(record.extra, dict):
            payload.update({k: _bounded(v) for k, v in record.extra.items() if v is not None})
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


ROOT_LOGGER = "statement_ingest"


def get_json_logger(name: str = ROOT_LOGGER, level: int | None = None) -> logging.Logger:
    """
    Loggers under `statement_ingest.*` share one JSON handler on the package
    root; anything else gets its own.
    """
    owner = logging.getLogger(ROOT_LOGGER if name.startswith(ROOT_LOGGER + ".") else name)
    if not owner.handlers:
        owner.setLevel(_env_level())
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JsonFormatter())
        owner.addHandler(handler)
        owner.propagate = False
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level)
    return logger


def _env_level() -> int:
    level = logging.getLevelName(getenv_str("LOG_LEVEL", "INFO").upper())
    return level if isinstance(level, int) else logging.INFO
