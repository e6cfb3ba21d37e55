"""
Structured logging helpers for the ingestion pipeline.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """
    Emit one structured log line as compact JSON.
    """

    payload = {"event": event, **fields}
    logger.log(level, json.dumps(payload, default=str, ensure_ascii=False, sort_keys=True))


def configure_logging(*, log_path: Path | None = None, level: str = "INFO") -> None:
    """
    Configure root logging once for a CLI process.

    When `log_path` is given, every line is also appended to that file.
    """

    logging.basicConfig(
        level=getattr(logging, level.strip().upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    if log_path is None:
        return

    root = logging.getLogger()
    resolved = str(log_path.resolve())
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == resolved:
            return

    log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(file_handler)
