"""
Centralized Logging

Architectural Intent:
- One handler on the "keel" logger, configured once by the CLI
- --verbose/--debug pick the level; log_json in keel.json picks the format
- Deployment context (deployment_id, host_id, phase) passed through
  `extra=` is rendered by both formatters, so interleaved output from
  concurrent hosts stays attributable

Security:
- Hook environments and resolved secrets are never handed to loggers
"""

import json
import logging
import sys
from datetime import datetime, UTC

_CONTEXT_FIELDS = ("deployment_id", "host_id", "phase")


def _context(record: logging.LogRecord) -> dict[str, str]:
    return {
        name: getattr(record, name)
        for name in _CONTEXT_FIELDS
        if getattr(record, name, None)
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context(record),
        }
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


class ContextFormatter(logging.Formatter):
    """Human-readable lines, with deployment context as a short prefix."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        context = _context(record)
        if not context:
            return line
        deployment = context.get("deployment_id", "")[:8]
        where = "/".join(v for v in (context.get("host_id"), context.get("phase")) if v)
        prefix = " ".join(p for p in (deployment, where) if p)
        return f"{line} [{prefix}]"


def configure_logging(
    level: int = logging.INFO,
    json_format: bool = False,
) -> None:
    """Configure logging for the Keel application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, etc.)
        json_format: If True, use JSON structured output. Otherwise human-readable.
    """
    root = logging.getLogger("keel")
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if json_format else ContextFormatter())
    root.addHandler(handler)
