"""
Logging for the Doomock bot.

Console output always; Logtail as well when LOGTAIL_SOURCE_TOKEN is set.
Handlers are installed once on the root logger so library logs (telegram,
httpx, motor) share the same sinks. Messages may be plain strings or dicts;
dicts are shipped to Logtail as structured JSON.
"""
import json
import logging
import os
import sys
from threading import Lock

from logtail import LogtailHandler

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_DATEFMT = "%Y-%m-%d %H:%M:%S"

_configured = False
_configure_lock = Lock()


class StructuredFormatter(logging.Formatter):
    """Dict messages become one JSON object; anything else is formatted as usual."""

    def format(self, record: logging.LogRecord) -> str:
        if not isinstance(record.msg, dict):
            return super().format(record)
        payload = {
            "level": record.levelname,
            "logger": record.name,
            "timestamp": self.formatTime(record, CONSOLE_DATEFMT),
            "message": record.msg.get("message") or record.msg.get("event", ""),
        }
        payload.update((k, v) for k, v in record.msg.items() if k != "message")
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


def console_handler(level: int = logging.INFO) -> logging.Handler:
    """stdout handler; dict messages are printed as JSON like on Logtail."""
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(StructuredFormatter(CONSOLE_FORMAT, CONSOLE_DATEFMT))
    return console


def _level_from_env() -> int:
    level_name = (os.getenv("LOG_LEVEL") or "INFO").upper()
    level = logging.getLevelName(level_name)
    return level if isinstance(level, int) else logging.INFO


def configure_logging() -> None:
    """Install the console and Logtail handlers on the root logger (idempotent)."""
    global _configured
    with _configure_lock:
        if _configured:
            return
        _configured = True

        level = _level_from_env()
        root = logging.getLogger()
        root.setLevel(level)

        root.addHandler(console_handler(level))

        token = os.getenv("LOGTAIL_SOURCE_TOKEN")
        if not token:
            root.debug("LOGTAIL_SOURCE_TOKEN not set, Logtail disabled")
            return
        try:
            logtail = LogtailHandler(source_token=token, host=os.getenv("LOGTAIL_INGEST_HOST", "in.logtail.com"))
        except Exception as e:
            root.warning(f"Failed to initialize Logtail handler, console only: {e}")
            return
        logtail.setLevel(level)
        logtail.setFormatter(StructuredFormatter())
        root.addHandler(logtail)
        root.info({"event": "logger_init", "logtail_enabled": True})


def get_logger(name: str) -> logging.Logger:
    """Module logger (`get_logger(__name__)`); configures logging on first use."""
    configure_logging()
    return logging.getLogger(name)
