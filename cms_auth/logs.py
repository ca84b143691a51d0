"""Logging setup for the Flask application."""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict

from flask import Flask, has_request_context, request


class RequestFormatter(logging.Formatter):
    """Emits plain or JSON lines, adding the request route when there is one."""

    def __init__(self, as_json: bool = False) -> None:
        super().__init__()
        self.as_json = as_json

    def format(self, record: logging.LogRecord) -> str:
        payload = _record_payload(record)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if self.as_json:
            return json.dumps(payload, ensure_ascii=True)
        parts = [f"[{payload['level']}]", payload["msg"]]
        for key in ("method", "route"):
            if key in payload:
                parts.append(f"{key}={payload[key]}")
        line = " ".join(parts)
        if "exception" in payload:
            line = f"{line}\n{payload['exception']}"
        return line


def _record_payload(record: logging.LogRecord) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "ts": datetime.utcnow().isoformat() + "Z",
        "level": record.levelname,
        "logger": record.name,
        "msg": record.getMessage(),
    }
    if has_request_context():
        payload["route"] = request.path
        payload["method"] = request.method
    return payload


def configure_logging(app: Flask) -> None:
    level_name = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    app.logger.setLevel(getattr(logging, level_name, logging.INFO))

    handler = logging.StreamHandler()
    handler.setFormatter(RequestFormatter(as_json=str(app.config.get("LOG_FORMAT", "plain")).lower() == "json"))

    app.logger.handlers.clear()
    app.logger.addHandler(handler)


def mask_email(addr: str) -> str:
    """``alice@example.com`` -> ``a***@e***.com``; keeps log lines free of full addresses."""
    try:
        local, domain = addr.split("@", 1)
    except ValueError:
        return "***"
    local_mask = local[0] + "***" if len(local) > 1 else "*"
    dot = domain.rfind(".")
    if dot > 0:
        return f"{local_mask}@{domain[0]}***{domain[dot:]}"
    return f"{local_mask}@{domain[:1]}***"
