"""JSON logging with stable schema."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from dispmap.common.constants import JSON_LOG_FIELDS
from dispmap.common.fs import ensure_dir
from dispmap.common.time_utils import utc_timestamp_iso

ROOT_LOGGER_NAME = "dispmap"


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": utc_timestamp_iso(),
            "run_id": getattr(record, "run_id", None),
            "stage": getattr(record, "stage", None),
            "region": getattr(record, "region", None),
            "record": getattr(record, "record", None),
            "event": getattr(record, "event", None),
            "status": getattr(record, "status", None),
            "attempt": getattr(record, "attempt", None),
            "duration_ms": getattr(record, "duration_ms", None),
            "rows_in": getattr(record, "rows_in", None),
            "rows_out": getattr(record, "rows_out", None),
            "error_code": getattr(record, "error_code", None),
            "message": record.getMessage(),
        }
        for field in JSON_LOG_FIELDS:
            payload.setdefault(field, None)
        return json.dumps(payload, ensure_ascii=False)


class RunIdFilter(logging.Filter):
    """Stamp the active run id onto records that did not set one."""

    def __init__(self, run_id: str) -> None:
        super().__init__()
        self.run_id = run_id

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "run_id", None) is None:
            record.run_id = self.run_id
        return True


def build_logger(run_id: str, data_dir: Path, level: str = "INFO") -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level.upper())
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    run_filter = RunIdFilter(run_id)

    stream = logging.StreamHandler()
    stream.setFormatter(JsonLineFormatter())
    stream.addFilter(run_filter)
    root.addHandler(stream)

    log_path = data_dir / "run_meta" / f"{run_id}.log.jsonl"
    ensure_dir(log_path.parent)
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(JsonLineFormatter())
    file_handler.addFilter(run_filter)
    root.addHandler(file_handler)

    return logging.getLogger(f"{ROOT_LOGGER_NAME}.run")


def log_event(logger: logging.Logger, message: str, *, level: int = logging.INFO, **event_fields: Any) -> None:
    logger.log(level, message, extra=event_fields)
