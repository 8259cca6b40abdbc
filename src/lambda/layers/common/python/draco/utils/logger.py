"""Lightweight JSON logger utility for the DRACO Lambdas.

Provides a consistent logger adapter that emits one structured JSON object per
line with environment and correlation_id fields when available, plus the saga
fields (event type, snapshot type, saga state) passed as per-call extras.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional

_SAGA_FIELDS = ("event_type", "snapshot_type", "saga_state", "source_arn")


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        env = getattr(record, "environment", None) or os.environ.get("ENVIRONMENT")
        if env:
            payload["environment"] = env
        corr = getattr(record, "correlation_id", None)
        if corr:
            payload["correlation_id"] = corr
        for field in _SAGA_FIELDS:
            value = getattr(record, field, None)
            if value:
                payload[field] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if not hasattr(record, "asctime"):
            payload["timestamp"] = record.created
        return json.dumps(payload, ensure_ascii=False, default=str)


class _Adapter(logging.LoggerAdapter):
    def process(self, msg: Any, kwargs: Dict[str, Any]):  # type: ignore[override]
        extra = self.extra.copy() if isinstance(self.extra, dict) else {}
        if "extra" in kwargs and isinstance(kwargs["extra"], dict):
            extra.update(kwargs["extra"])  # merge per-call extras
        kwargs["extra"] = extra
        return msg, kwargs


def _debug_enabled() -> bool:
    raw = str(os.environ.get("DEBUG", "")).strip().lower()
    return raw not in ("", "0", "false", "no")


def get_logger(name: str, correlation_id: Optional[str] = None) -> logging.LoggerAdapter:
    """Return a JSON-formatted logger adapter with optional correlation_id."""
    base = logging.getLogger(name)
    if not base.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(_JsonFormatter())
        base.addHandler(handler)
    base.setLevel(logging.DEBUG if _debug_enabled() else logging.INFO)
    extras = {"environment": os.environ.get("ENVIRONMENT")}
    if correlation_id:
        extras["correlation_id"] = correlation_id
    return _Adapter(base, extras)


def configure_debug(level: int, *names: str) -> None:
    """Raise verbosity of the draco loggers (and any extra names) when DEBUG is set."""
    target = logging.DEBUG if level > 0 else logging.INFO
    for name in list(logging.root.manager.loggerDict):
        if name == "draco" or name.startswith("draco.") or name in names:
            logging.getLogger(name).setLevel(target)


def extract_correlation_id(event: Optional[Dict[str, Any]], context: Any = None) -> Optional[str]:
    """Try to extract a correlation id from common event shapes.

    Order: explicit id fields, the SNS MessageId of the first record, the
    EventBridge event id, and finally the Lambda request id.
    """
    if isinstance(event, dict):
        for key in ("correlation_id", "CorrelationId", "request_id"):
            val = event.get(key)
            if isinstance(val, str) and val:
                return val
        records = event.get("Records")
        if isinstance(records, list) and records and isinstance(records[0], dict):
            sns = records[0].get("Sns")
            if isinstance(sns, dict):
                mid = sns.get("MessageId")
                if isinstance(mid, str) and mid:
                    return mid
        if event.get("version") == "0":
            eid = event.get("id")
            if isinstance(eid, str) and eid:
                return eid
    request_id = getattr(context, "aws_request_id", None)
    if isinstance(request_id, str) and request_id:
        return request_id
    return None
