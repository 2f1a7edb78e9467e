"""Run log: one row per ingestion attempt for one source."""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from palbase.models.base import Base, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from palbase.models.run_error import RunError


class RunLog(UUIDPrimaryKeyMixin, Base):
    """Tracks execution of an ingestion run.

    Status moves pending -> running -> completed | failed and is never
    reopened once terminal.
    """

    __tablename__ = "run_logs"

    source: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    trigger: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="manual",
        comment="scheduled, manual, or a caller-supplied identifier",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="pending",
        index=True,
        comment="Status: 'pending', 'running', 'completed', 'failed'",
    )

    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    pets_found: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pets_added: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pets_updated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pets_removed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    errors: Mapped[list["RunError"]] = relationship(back_populates="run_log")

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "failed")

    def __repr__(self) -> str:
        return f"<RunLog(id={self.id}, source='{self.source}', status='{self.status}')>"
