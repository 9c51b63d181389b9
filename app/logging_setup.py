import logging
import sys
from contextvars import ContextVar
from typing import Optional

from pythonjsonlogger.json import JsonFormatter

from app.config import settings

# per-request trace id, set by the HTTP middleware
TRACE_ID_CTX: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s %(trace_id)s"


class TraceIdFilter(logging.Filter):
    def filter(self, record):
        record.trace_id = TRACE_ID_CTX.get(None)
        return True


def json_handler(stream=None) -> logging.Handler:
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JsonFormatter(LOG_FORMAT, static_fields={"service": settings.APP_NAME}))
    handler.addFilter(TraceIdFilter())
    return handler


def setup_logging(level: Optional[int] = None):
    """Route every logger through one JSON handler on the root logger."""
    if level is None:
        level = logging.DEBUG if settings.DEBUG else logging.INFO
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [json_handler()]
    # SQL echo stays out of the JSON stream unless DEBUG asks for it
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.DEBUG else logging.WARNING)
