import logging
import sys
from contextvars import ContextVar
from typing import Optional

from pythonjsonlogger import jsonlogger

from busline.config import settings

# per-request correlation: the HTTP trace id and the booking being worked on
TRACE_ID_CTX: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)
BOOKING_REF_CTX: ContextVar[Optional[str]] = ContextVar("booking_ref", default=None)


class ContextFilter(logging.Filter):
    def filter(self, record):
        record.trace_id = TRACE_ID_CTX.get()
        record.booking_ref = BOOKING_REF_CTX.get()
        return True


def setup_logging(level: Optional[int] = None):
    if level is None:
        level = logging.DEBUG if settings.DEBUG else logging.INFO
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s %(trace_id)s %(booking_ref)s"))
    handler.addFilter(ContextFilter())
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]
    # sqlalchemy echoes every statement at INFO when DEBUG is on
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
