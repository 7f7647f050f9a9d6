import json
import logging
from logging.handlers import RotatingFileHandler
from datetime import datetime, timezone

from keybot.core.config import Settings

# Библиотеки, которые пишут по строке на каждый апдейт/запрос.
# Исходы апдейтов логирует keybot.routing.handler, запросы считает metrics.
NOISY_LOGGERS = ("aiogram.event", "httpx", "uvicorn.access")


class JsonFormatter(logging.Formatter):
    """One JSON object per line: ts/level/logger/message plus known extra fields."""

    EXTRA_FIELDS = (
        "event_kind", "action", "chat_id", "user_id", "update_id", "query_id",
        "latency_ms", "error", "cause", "reason", "status_code", "mode", "path",
    )

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False)


def _build_handlers(settings: Settings) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(
            RotatingFileHandler(
                settings.log_file,
                maxBytes=settings.log_max_bytes,
                backupCount=settings.log_backup_count,
            )
        )
    return handlers


def configure_logging(settings: Settings) -> None:
    """
    Route all logging through JsonFormatter at LOG_LEVEL.
    Per-update chatter from aiogram/httpx/uvicorn is raised to WARNING
    unless LOG_LEVEL=DEBUG.
    """
    formatter = JsonFormatter()
    handlers = _build_handlers(settings)
    for handler in handlers:
        handler.setFormatter(formatter)

    level = settings.log_level.upper()
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = handlers

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if level == "DEBUG" else logging.WARNING)
