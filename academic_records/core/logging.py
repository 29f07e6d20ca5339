import json
import logging
import time
import traceback
from datetime import datetime, timezone
from functools import wraps
from logging.handlers import RotatingFileHandler
from typing import Any, Iterable, Optional

from academic_records.core.config import settings

PLAIN_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class EventJsonFormatter(logging.Formatter):
    """One JSON object per record; structured event fields are flattened into it"""

    def __init__(self, context_fields: Iterable[str] = ()):
        super().__init__()
        self.context_fields = tuple(context_fields)

    def format(self, record):
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "function": record.funcName,
            "message": record.getMessage(),
        }

        event = getattr(record, 'event', None)
        if event:
            payload['event'] = event
            payload.update(getattr(record, 'event_fields', {}))

        for name in self.context_fields:
            if hasattr(record, name):
                payload[name] = getattr(record, name)

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            payload['exception'] = {
                'type': exc_type.__name__,
                'message': str(exc_value),
                'traceback': traceback.format_exception(*record.exc_info),
            }

        return json.dumps(payload, default=str)


class LoggerFactory:
    """Builds the package logger: a console handler plus an optional rotating JSON file"""

    @staticmethod
    def create_logger(
        name: str,
        level: str = "INFO",
        log_file: Optional[str] = None,
        json_console: bool = False
    ) -> logging.Logger:
        logger = logging.getLogger(name)
        logger.setLevel(getattr(logging, level))
        logger.handlers.clear()

        console = logging.StreamHandler()
        console.setFormatter(
            EventJsonFormatter(context_fields=['duration_ms'])
            if json_console else logging.Formatter(PLAIN_FORMAT)
        )
        logger.addHandler(console)

        if log_file:
            file_handler = RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5)
            file_handler.setFormatter(EventJsonFormatter(context_fields=['duration_ms']))
            logger.addHandler(file_handler)

        return logger


def log_event(logger: logging.Logger, event: str, level: int = logging.INFO, **fields: Any) -> None:
    """Emit a structured observability event.

    The event name doubles as the message; ``fields`` are attached to the
    record so the JSON formatter can flatten them into the output.
    """
    if not logger.isEnabledFor(level):
        return
    summary = " ".join(f"{key}={value}" for key, value in fields.items())
    logger.log(
        level,
        f"{event} {summary}".rstrip(),
        extra={'event': event, 'event_fields': fields}
    )


def log_function_call(logger: logging.Logger):
    """Time a service coroutine at DEBUG; failures are logged with their traceback and re-raised"""
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            started = time.perf_counter()
            logger.debug(f"Entering {func.__qualname__}")
            try:
                result = await func(*args, **kwargs)
            except Exception:
                logger.error(f"Error in {func.__qualname__}", exc_info=True)
                raise
            elapsed = round((time.perf_counter() - started) * 1000, 3)
            logger.debug(f"Exiting {func.__qualname__}", extra={'duration_ms': elapsed})
            return result
        return wrapper
    return decorator


logger = LoggerFactory.create_logger(
    "academic_records",
    level=settings.LOG_LEVEL,
    log_file=settings.LOG_FILE,
    json_console=settings.LOG_JSON
)
