"""Logging utilities for notes-parser.

Log lines carry structured data rendered as ``[key=value, ...]`` and the id of
the HTTP request being served, so the outcome of every uploaded file can be
traced back to its request.
"""

import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, Optional

REQUEST_ID_HEADER = "X-Request-ID"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Request id shared by all tasks spawned while serving one request
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class ContextLogger:
    """Logger wrapper that appends bound fields, extra data and the request id.

    Examples:
        >>> log = get_logger(__name__).bind(file_name="deck.pptx")
        >>> log.info("Slides read", extra_data={"slide_count": 12})
        # ... Slides read [file_name=deck.pptx, slide_count=12, request_id=...]
    """

    def __init__(self, logger: logging.Logger, fields: Optional[dict[str, Any]] = None):
        self.logger = logger
        self.fields = fields or {}

    def bind(self, **fields: Any) -> "ContextLogger":
        """Return a logger that adds ``fields`` to every line."""
        return ContextLogger(self.logger, {**self.fields, **fields})

    def _render(self, msg: str, extra_data: Optional[dict[str, Any]]) -> str:
        data = {**self.fields, **(extra_data or {})}
        request_id = request_id_var.get()
        if request_id:
            data["request_id"] = request_id
        if not data:
            return msg
        return msg + " [" + ", ".join(f"{k}={v}" for k, v in data.items()) + "]"

    def log(self, level: int, msg: str, extra_data: Optional[dict[str, Any]] = None, **kwargs):
        if self.logger.isEnabledFor(level):
            self.logger.log(level, self._render(msg, extra_data), **kwargs)

    def debug(self, msg: str, extra_data: Optional[dict[str, Any]] = None, **kwargs):
        self.log(logging.DEBUG, msg, extra_data, **kwargs)

    def info(self, msg: str, extra_data: Optional[dict[str, Any]] = None, **kwargs):
        self.log(logging.INFO, msg, extra_data, **kwargs)

    def warning(self, msg: str, extra_data: Optional[dict[str, Any]] = None, **kwargs):
        self.log(logging.WARNING, msg, extra_data, **kwargs)

    def error(self, msg: str, extra_data: Optional[dict[str, Any]] = None, **kwargs):
        self.log(logging.ERROR, msg, extra_data, **kwargs)

    def exception(self, msg: str, extra_data: Optional[dict[str, Any]] = None, **kwargs):
        """Log an error together with the active traceback."""
        kwargs.setdefault("exc_info", True)
        self.log(logging.ERROR, msg, extra_data, **kwargs)


def setup_logging(log_level: str = "INFO"):
    """Install a single stdout handler on the root logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    root_logger = logging.getLogger()
    root_logger.handlers[:] = [handler]
    root_logger.setLevel(level)

    # httpx logs every request line at INFO, including upstream URLs
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> ContextLogger:
    return ContextLogger(logging.getLogger(name))


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set request ID for the current context, generating one if needed."""
    request_id = request_id or uuid.uuid4().hex
    request_id_var.set(request_id)
    return request_id


class Timer:
    """Measures a pipeline phase; readable while running and after exit."""

    def __init__(self, name: str):
        self.name = name
        self._start: Optional[float] = None
        self._stop: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, *args):
        self._stop = time.perf_counter()

    def get_elapsed_ms(self) -> int:
        if self._start is None:
            return 0
        end = self._stop if self._stop is not None else time.perf_counter()
        return int((end - self._start) * 1000)
