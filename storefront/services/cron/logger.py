"""
CronLogger: start / success / failure records in cron_job_logs.

Writes go through their own session so a rolled-back sweep still leaves its
log trail. Logging failures never break the job.
"""
import logging
import time
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.models.cron_job_log import CronJobLog

logger = logging.getLogger(__name__)


class CronLogger:
    def __init__(self, job_name: str, session_factory: Callable[[], Session]) -> None:
        self.job_name = job_name
        self.session_factory = session_factory
        self._started = time.monotonic()

    def _write(self, status: str, message: str | None, details: Any = None, duration_ms: int | None = None) -> None:
        db = self.session_factory()
        try:
            db.add(
                CronJobLog(
                    job_name=self.job_name,
                    status=status,
                    message=message,
                    details=details,
                    duration_ms=duration_ms,
                )
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("cron_log_write_failed", extra={"job_name": self.job_name, "status": status, "error": str(e)})
        finally:
            db.close()

    def _elapsed_ms(self) -> int:
        return int((time.monotonic() - self._started) * 1000)

    def start(self) -> None:
        self._started = time.monotonic()
        logger.info("cron_job_started", extra={"job_name": self.job_name})
        self._write("started", "Job started")

    def success(self, details: Any = None, message: str = "Job completed") -> None:
        duration_ms = self._elapsed_ms()
        logger.info("cron_job_succeeded", extra={"job_name": self.job_name, "latency_ms": duration_ms})
        self._write("success", message, details=details, duration_ms=duration_ms)

    def failure(self, error: BaseException) -> None:
        duration_ms = self._elapsed_ms()
        logger.error("cron_job_failed", extra={"job_name": self.job_name, "error": str(error)})
        self._write(
            "failed",
            str(error) or error.__class__.__name__,
            details={"error": str(error), "type": error.__class__.__name__},
            duration_ms=duration_ms,
        )
