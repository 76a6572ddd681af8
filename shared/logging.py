"""
Per-request logging context.

A request id is stored in a ContextVar by the HTTP middleware and stamped on
every log record through `RequestIdFilter`, so grading/reconciliation logs of
concurrent requests can be told apart.
"""
import logging
import uuid
from contextvars import ContextVar

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s"


def set_request_id(rid: str | None = None) -> str:
    rid = (rid or "").strip() or uuid.uuid4().hex
    _request_id.set(rid)
    return rid


def get_request_id() -> str | None:
    return _request_id.get()


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get() or "-"
        return True


def configure_logging(level: int | str = "INFO") -> None:
    handler = logging.StreamHandler()
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.basicConfig(level=level, handlers=[handler], force=True)
