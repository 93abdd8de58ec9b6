"""
Central logging setup, called once from main.py.

LOG_LEVEL picks the level (default INFO). LOG_JSON=1 switches to one JSON
object per line for log shippers. Wallet addresses are truncated before they
reach a message (utils.common_helpers.truncate_address); API keys never do.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict

PLAIN_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Attributes every LogRecord carries; anything else came in through `extra=`.
_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

_QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "hpack", "yahooquery")


def _default(obj: Any):
    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    return str(obj)


class JsonFormatter(logging.Formatter):
    """Single-line JSON: ts, level, logger, message, exception and any extras."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(
            (k, v) for k, v in vars(record).items()
            if k not in _STANDARD_ATTRS and k not in entry and v is not None
        )
        return json.dumps(entry, default=_default)


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


def configure_logging() -> None:
    level = logging.getLevelName((os.getenv("LOG_LEVEL") or "INFO").strip().upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if _env_flag("LOG_JSON") else logging.Formatter(PLAIN_FORMAT))

    # force=True drops handlers left over from a previous call (uvicorn --reload)
    logging.basicConfig(level=level, handlers=[handler], force=True)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
