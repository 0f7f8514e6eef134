import logging

from boilerplate.core.config import LOG_LEVEL
from boilerplate.core.context import get_request_id

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(requestid)s] %(message)s"


class RequestIdFilter(logging.Filter):
    """Stamps every record with the id of the request being served."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "requestid", None):
            record.requestid = get_request_id() or "-"
        return True


def setup_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())

    # Set logging level for Tortoise ORM
    logging.getLogger("tortoise").setLevel(logging.INFO)
