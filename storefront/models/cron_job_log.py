"""
CronJobLog: append-only audit row per scheduled run (started / success / failed).
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, Integer, String, Text

from storefront.db.base import Base, JSONType


class CronJobLog(Base):
    __tablename__ = "cron_job_logs"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    job_name = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False)
    message = Column(Text, nullable=True)
    details = Column(JSONType, nullable=True)
    duration_ms = Column(Integer, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
