"""JSON logs carrying the order, session and presentation mode being worked on."""

import logging
import sys
from contextvars import ContextVar

from pythonjsonlogger.json import JsonFormatter

from paybridge.common.config import settings
from paybridge.common.tracing import current_trace_id

order_id_ctx: ContextVar[str] = ContextVar("order_id", default="")
session_id_ctx: ContextVar[str] = ContextVar("session_id", default="")
presentation_mode_ctx: ContextVar[str] = ContextVar("presentation_mode", default="")

LOG_FORMAT = (
    "%(asctime)s %(levelname)s %(name)s %(service_name)s %(trace_id)s "
    "%(order_id)s %(session_id)s %(presentation_mode)s %(message)s"
)


class ContextFilter(logging.Filter):
    """Stamp checkout correlation fields onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = settings.service_name
        record.trace_id = current_trace_id()
        record.order_id = order_id_ctx.get()
        record.session_id = session_id_ctx.get()
        record.presentation_mode = presentation_mode_ctx.get()
        return True


def configure_logging(level: str | None = None, stream=None) -> logging.Handler:
    """Route the root logger to one JSON handler; repeated calls replace it."""

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.addFilter(ContextFilter())
    handler.setFormatter(JsonFormatter(LOG_FORMAT))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel((level or settings.log_level).upper())
    return handler


logger = logging.getLogger("paybridge")
