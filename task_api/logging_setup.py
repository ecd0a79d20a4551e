"""Logging configuration and request-scoped log adapters."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, MutableMapping, Optional, Tuple

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Configure the root logger with a stderr handler and an optional file handler.

    Existing root handlers are removed first, so calling this twice does not
    duplicate output.
    """
    root = logging.getLogger()
    root.setLevel(level)

    for handler in list(root.handlers):
        root.removeHandler(handler)

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(fmt)
    root.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(path), encoding="utf-8")
        file_handler.setFormatter(fmt)
        root.addHandler(file_handler)

    # Motor/pymongo heartbeat chatter
    logging.getLogger("pymongo").setLevel(logging.WARNING)


class RequestLogAdapter(logging.LoggerAdapter):
    """Prefixes every message with the request id it was created for."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        request_id = (self.extra or {}).get("request_id")
        if request_id:
            return f"[{request_id}] {msg}", kwargs
        return msg, kwargs


def request_logger(logger: logging.Logger, request_id: Optional[str]) -> RequestLogAdapter:
    return RequestLogAdapter(logger, {"request_id": request_id})
