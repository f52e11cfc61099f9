"""
utils/loggers.py

Logging for the ledger core.

Public API
----------
- get_logger(name=None) -> logging.Logger
- log_event(logger, op, phase, message, extra: dict = {})

Modules log through `logging.getLogger(__name__)`; records propagate to the
package logger configured here. Soft-delete lifecycle events go through
`log_event`, which attaches a structured payload that the JSON-lines file
formatter renders.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from .. import config

__all__ = ["get_logger", "log_event", "ROOT_LOGGER_NAME"]

ROOT_LOGGER_NAME = "construction_ledger"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Return the package logger (or a child of it), configuring handlers once.

    The console handler uses the plain text format; when LEDGER_LOG_FILE is
    set, a JSON-lines file handler is added as well.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        root.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        root.addHandler(ch)
        if config.LOG_FILE:
            log_file = Path(config.LOG_FILE)
            log_file.parent.mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(str(log_file), mode="a", encoding="utf-8", delay=True)
            fh.setFormatter(_JsonLineFormatter())
            root.addHandler(fh)
    if not name or name == ROOT_LOGGER_NAME:
        return root
    return logging.getLogger(name)


class _JsonLineFormatter(logging.Formatter):
    """
    Minimal JSON-lines formatter:
      {"ts":"2026-01-05T12:00:01.123Z","level":"INFO","name":"...","msg":"...","extra":{...}}
    """
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload = {
            "ts": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        if hasattr(record, "extra_payload") and isinstance(record.extra_payload, dict):
            payload["extra"] = record.extra_payload
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def log_event(
    logger: logging.Logger,
    op: str,
    phase: str,
    message: str,
    extra: Dict[str, object] | None = None,
    level: int = logging.INFO,
) -> None:
    """
    Log a structured event line.

    Args:
        logger: Any logger under the package logger.
        op: Operation name, e.g. "trash" or "restore".
        phase: Phase within the operation, e.g. "snapshot", "commit", "rejected".
        message: Human-readable short message.
        extra: Optional key/values (record type, ids, error text).
        level: Logging level (default INFO).
    """
    extra_payload = {"op": op, "phase": phase}
    if extra:
        for k, v in extra.items():
            if k not in extra_payload:
                extra_payload[k] = v
    logger.log(level, message, extra={"extra_payload": extra_payload})
