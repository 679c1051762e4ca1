import logging
import re

from pythonjsonlogger import jsonlogger

from .config import Settings


class NotesRedactingFilter(logging.Filter):
    """Strip free-text dose notes from log lines; they may hold health details."""

    _notes_re = re.compile(r"\b(notes|skip_reason)=('[^']*'|\"[^\"]*\"|\S+)")

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            msg = record.getMessage()
        except Exception:
            return True
        record.msg = self._notes_re.sub(r"\1=[REDACTED]", msg)
        record.args = ()
        return True


def configure_logging(settings: Settings) -> None:
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    handler = logging.StreamHandler()

    if settings.LOG_JSON:
        formatter = jsonlogger.JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s"
        )
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s"
        )

    handler.setFormatter(formatter)
    handler.addFilter(NotesRedactingFilter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]

    # Reduce noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
