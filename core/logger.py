from __future__ import annotations

import logging
import re
from collections import deque
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

SENSITIVE_KEYS = {"privatekey", "secret", "password", "apikey", "api_key", "authorization", "token"}
REDACTED = "[REDACTED]"

# key=value pairs in URLs and error text, e.g. ?api-key=...
SECRET_PARAM = re.compile(r"((?:api[-_]?key|token|secret)=)[^&\s'\"]+", re.IGNORECASE)

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def scrub(text: str) -> str:
    return SECRET_PARAM.sub(r"\1" + REDACTED, text)


def sanitize(data: Any) -> Any:
    """Replace values of sensitive-looking keys, walking nested dicts and lists. Strings lose secret query params."""
    if isinstance(data, dict):
        out = {}
        for k, v in data.items():
            if str(k).lower() in SENSITIVE_KEYS:
                out[k] = REDACTED
            else:
                out[k] = sanitize(v)
        return out
    if isinstance(data, (list, tuple)):
        return [sanitize(x) for x in data]
    if isinstance(data, BaseException):
        return scrub(f"{type(data).__name__}: {data}")
    if isinstance(data, str):
        return scrub(data)
    return data


class RingBufferHandler(logging.Handler):
    """
    Keeps the last `capacity` records as plain dicts for the /logs endpoint.
    Context passed via `extra={"data": {...}}` is sanitized before storage.
    """

    def __init__(self, capacity: int = 1000):
        super().__init__(level=logging.DEBUG)
        self.entries: deque = deque(maxlen=capacity)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            data = getattr(record, "data", None)
            self.entries.append({
                "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                "level": record.levelname.lower(),
                "logger": record.name,
                "message": scrub(record.getMessage()),
                "data": sanitize(data) if data is not None else None,
            })
        except Exception:
            self.handleError(record)


class DiagnosticsLog:
    """
    Owns the ring buffer and hands out child loggers that feed it.
    One instance per process, built by the service context.
    """

    def __init__(self, capacity: int = 1000, name: str = "dashboard", console: bool = True):
        self.root = logging.getLogger(name)
        self.root.setLevel(logging.DEBUG)
        self.root.propagate = False
        for h in list(self.root.handlers):
            if isinstance(h, RingBufferHandler):
                self.root.removeHandler(h)
        self.buffer = RingBufferHandler(capacity)
        self.root.addHandler(self.buffer)
        if console and not any(type(h) is logging.StreamHandler for h in self.root.handlers):
            stream = logging.StreamHandler()
            stream.setLevel(logging.INFO)
            stream.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
            self.root.addHandler(stream)

    def get_logger(self, component: str) -> logging.Logger:
        return self.root.getChild(component)

    def get_logs(self, level: Optional[str] = None) -> List[Dict[str, Any]]:
        entries = list(self.buffer.entries)
        if level is None:
            return entries
        key = level.strip().lower()
        if key not in LEVELS:
            raise ValueError(f"Unknown log level: {level}")
        wanted = logging.getLevelName(LEVELS[key]).lower()
        return [e for e in entries if e["level"] == wanted]

    def clear(self) -> None:
        self.buffer.entries.clear()
