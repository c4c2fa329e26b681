# retail_pos/utils/loggers.py
"""
Logging helpers.

- get_logger(name) -> logging.Logger with one stream handler (no duplicates)
  and, optionally, a JSON-lines events file.
- log_event(logger, op, phase, message, extra) for structured ledger events;
  the payload is rendered as a JSON line by JsonLineFormatter and kept on the
  record as `extra_payload` for any other handler.
"""
from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict

__all__ = ["get_logger", "log_event", "JsonLineFormatter"]

_ROOT_NAME = "retail_pos"


def get_logger(
    name: str = _ROOT_NAME,
    level: int | str | None = None,
    json_file: str | Path | None = None,
) -> logging.Logger:
    """
    Child loggers (retail_pos.*) propagate to the package logger, which owns
    the handlers: one console stream, plus one JSON-lines file handler when
    `json_file` is given (added once per path).
    """
    root = logging.getLogger(_ROOT_NAME)
    if not root.handlers:
        root.setLevel(logging.INFO)
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        root.addHandler(ch)
    if level is not None:
        root.setLevel(level)
    if json_file is not None:
        _add_json_file(root, Path(json_file))
    if name == _ROOT_NAME or name.startswith(_ROOT_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_ROOT_NAME}.{name}")


def _add_json_file(logger: logging.Logger, path: Path) -> None:
    target = os.path.abspath(path)
    for h in logger.handlers:
        if isinstance(h, logging.FileHandler) and h.baseFilename == target:
            return
    path.parent.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(target, mode="a", encoding="utf-8", delay=True)
    fh.setFormatter(JsonLineFormatter())
    logger.addHandler(fh)


class JsonLineFormatter(logging.Formatter):
    """
    {"ts":"2026-01-01T12:00:01.123Z","level":"INFO","name":"retail_pos.sales","msg":"...","extra":{...}}
    """
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        if hasattr(record, "extra_payload") and isinstance(record.extra_payload, dict):
            payload["extra"] = record.extra_payload
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
        op: Operation name, e.g. "checkout", "return", "stock_audit".
        phase: Phase within the operation, e.g. "committed", "conflict", "failed".
        message: Short human-readable message.
        extra: Additional key/values (ids, amounts, attempt counters).
    """
    extra_payload = {"op": op, "phase": phase}
    if extra:
        for k, v in extra.items():
            if k not in extra_payload:
                extra_payload[k] = v
    logger.log(level, message, extra={"extra_payload": extra_payload})
