"""Console logging setup for the CLI."""

import logging

from rich.logging import RichHandler

_STANDARD_ATTRS = set(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


class _ExtraFieldsFilter(logging.Filter):
    """Appends structured ``extra={...}`` fields to the event name."""

    def filter(self, record: logging.LogRecord) -> bool:
        fields = {key: value for key, value in record.__dict__.items() if key not in _STANDARD_ATTRS}
        if fields and not getattr(record, "_fields_rendered", False):
            rendered = " ".join(f"{key}={value}" for key, value in sorted(fields.items()))
            record.msg = f"{record.msg} {rendered}"
            record._fields_rendered = True
        return True


def configure_logging(level: str = "INFO") -> None:
    """Route ``call_bridge.*`` loggers to a rich console handler."""
    handler = RichHandler(rich_tracebacks=True, show_path=False)
    handler.addFilter(_ExtraFieldsFilter())

    logger = logging.getLogger("call_bridge")
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False
