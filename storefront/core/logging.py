import json
import logging
from logging.handlers import RotatingFileHandler
from datetime import datetime, timezone

from storefront.core.config import settings


class JsonFormatter(logging.Formatter):
    """One JSON object per line; known `extra` keys become top-level fields."""

    REQUEST_FIELDS = ("request_id", "path", "method", "status_code", "latency_ms")
    ORDER_FIELDS = (
        "order_id", "user_id", "provider", "provider_order_id",
        "type", "status", "amount_cents", "credits",
    )
    JOB_FIELDS = ("job_name", "processed")

    EXTRA_FIELDS = REQUEST_FIELDS + ORDER_FIELDS + JOB_FIELDS + ("error",)

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in self.EXTRA_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        # datetimes and Decimals in extras
        return json.dumps(payload, ensure_ascii=False, default=str)


# httpx logs every request URL at INFO, including signed TokenPay query strings
QUIET_LOGGERS = ("httpx", "httpcore")


def configure_logging() -> None:
    formatter = JsonFormatter()
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(
            RotatingFileHandler(
                settings.log_file,
                maxBytes=settings.log_max_bytes,
                backupCount=settings.log_backup_count,
            )
        )
    for handler in handlers:
        handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())
    root.handlers = handlers
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
