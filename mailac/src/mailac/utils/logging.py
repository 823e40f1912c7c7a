"""Structured JSON logging with key material redaction.

What:
  Offer a tiny facade over Python streams so every mailac component emits
  JSON log lines with consistent fields and never prints key material.

Why:
  Autocrypt processing is meant to be invisible to the user, which makes the
  log the only place where discarded headers, skipped gossip and dropped
  outgoing headers show up. A fixed schema keeps those traces greppable,
  and redaction keeps public keys (and anything derived from message bodies)
  out of shared log collectors.

How:
  :class:`JsonLogger` holds a target stream and component label. ``extra``
  fields are scrubbed recursively and the payload is written with
  :func:`json.dump`, one object per line, flushed immediately.

Interfaces:
  :class:`JsonLogger`, :func:`get_logger`.

Invariants & Safety:
  - Every entry carries ``ts``, ``lvl``, ``msg`` and ``component``.
  - ``keydata``, ``public_key``, ``gossip_key`` and ``payload`` are replaced by
    ``[redacted]`` at any nesting depth.
  - Values that are not JSON serialisable are rendered with ``str``.
"""
from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


REDACTED = "[redacted]"
SENSITIVE_KEYS = frozenset({"keydata", "public_key", "gossip_key", "payload"})


@dataclass
class JsonLogger:
    """Structured JSON logger with automatic redaction.

    The stream is resolved at write time when left unset so test harnesses
    that swap ``sys.stderr`` capture the output.
    """

    stream: Any = None
    component: str = "mailac"

    def log(self, level: str, message: str, *, extra: Optional[Dict[str, Any]] = None) -> None:
        """Emit a single JSON log entry.

        Args:
          level: Severity name, upper-cased on output.
          message: Core log message.
          extra: Optional context dictionary, redacted recursively.
        """

        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "lvl": level.upper(),
            "msg": message,
            "component": self.component,
        }
        if extra:
            payload.update(self._redact(extra))
        stream = self.stream if self.stream is not None else sys.stderr
        json.dump(payload, stream, separators=(",", ":"), default=str)
        stream.write("\n")
        stream.flush()

    def debug(self, message: str, **kwargs: Any) -> None:
        self.log("DEBUG", message, extra=kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self.log("INFO", message, extra=kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self.log("WARN", message, extra=kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self.log("ERROR", message, extra=kwargs)

    @staticmethod
    def _redact(data: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``data`` with sensitive keys masked."""

        result: Dict[str, Any] = {}
        for key, value in data.items():
            if key in SENSITIVE_KEYS:
                result[key] = REDACTED
            elif isinstance(value, dict):
                result[key] = JsonLogger._redact(value)
            else:
                result[key] = value
        return result


def get_logger(component: str) -> JsonLogger:
    """Construct a :class:`JsonLogger` bound to ``component``."""

    return JsonLogger(component=component)
