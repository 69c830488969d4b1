import logging
import sys
from contextvars import ContextVar

from pythonjsonlogger import jsonlogger

# request-scoped identifiers
TRACE_ID_CTX: ContextVar[str] = ContextVar("trace_id", default=None)
SESSION_ID_CTX: ContextVar[str] = ContextVar("session_id", default=None)


class RequestContextFilter(logging.Filter):
    def filter(self, record):
        record.trace_id = TRACE_ID_CTX.get(None)
        record.session_id = SESSION_ID_CTX.get(None)
        return True


def setup_logging(level: int = logging.INFO):
    root = logging.getLogger()
    handler = logging.StreamHandler(sys.stdout)
    fmt = jsonlogger.JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s %(trace_id)s %(session_id)s')
    handler.setFormatter(fmt)
    handler.addFilter(RequestContextFilter())
    root.setLevel(level)
    root.handlers = []
    root.addHandler(handler)
