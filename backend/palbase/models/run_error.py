"""Append-only error rows attached to a run."""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from palbase.models.base import Base, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from palbase.models.run_log import RunLog


class RunError(UUIDPrimaryKeyMixin, Base):
    """A single recorded failure.

    run_log_id is nullable so a crash before the run log exists can still be
    recorded.
    """

    __tablename__ = "run_errors"

    run_log_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("run_logs.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    source: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    error_type: Mapped[str] = mapped_column(String(50), nullable=False)
    error_message: Mapped[str] = mapped_column(Text, nullable=False)
    url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    stack_trace: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    run_log: Mapped[Optional["RunLog"]] = relationship(back_populates="errors")

    def __repr__(self) -> str:
        return f"<RunError(id={self.id}, source='{self.source}', type='{self.error_type}')>"
