"""Audit log of collection runs. Also drives run rate limiting."""

import enum
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import DateTime, Enum, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class RunStatus(str, enum.Enum):
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"
    PARTIAL = "PARTIAL"
    FAILED = "FAILED"


class SyncRunLog(Base):
    """One run of a named job. ``message`` holds a JSON document."""

    __tablename__ = "sync_run_logs"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    name: Mapped[str] = mapped_column(String(100), index=True)
    status: Mapped[RunStatus] = mapped_column(
        Enum(RunStatus, values_callable=lambda enum: [e.value for e in enum])
    )
    executed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True
    )
    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<SyncRunLog {self.name}: {self.status.value} @ {self.executed_at}>"
