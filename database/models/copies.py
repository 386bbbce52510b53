"""
Copies Module

Scanned answer scripts (the unit of grading work) and their allocation
lifecycle: unassigned -> assigned -> examining -> evaluated.
"""

from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    Enum as SQLEnum,
    Index,
    Integer,
)
from sqlalchemy.orm import Mapped, mapped_column

from core.utils.datetime import now
from database.engine import Base
from database.models.examiners import ID_TYPE
from database.types import UTCDateTime


class CopyStatus(str, PyEnum):
    """Allocation lifecycle of a copy."""

    UNASSIGNED = "unassigned"
    ASSIGNED = "assigned"
    EXAMINING = "examining"
    EVALUATED = "evaluated"


OPEN_STATUSES = (CopyStatus.ASSIGNED, CopyStatus.EXAMINING)


class Copy(Base):
    """
    One student's answer script for one exam.

    ``version`` is bumped by every engine mutation; writers update
    ``WHERE version = <value they read>`` so concurrent mutations of the same
    copy cannot silently overwrite each other.
    """

    __tablename__ = "copies"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    exam_id: Mapped[int] = mapped_column(ID_TYPE, nullable=False, index=True)

    status: Mapped[CopyStatus] = mapped_column(
        SQLEnum(
            CopyStatus,
            native_enum=False,
            length=20,
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        default=CopyStatus.UNASSIGNED,
        nullable=False,
        index=True,
    )
    assigned_examiner_id: Mapped[int | None] = mapped_column(ID_TYPE, index=True)

    assigned_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    evaluation_started_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    last_updated_by_examiner: Mapped[datetime | None] = mapped_column(UTCDateTime)
    evaluation_completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime)

    # Idle episode bookkeeping
    last_warned_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    reassignment_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    needs_attention: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=now, onupdate=now, nullable=False
    )

    __table_args__ = (
        Index("idx_copies_exam_status", "exam_id", "status"),
        Index("idx_copies_status_examiner", "status", "assigned_examiner_id"),
    )

    def __repr__(self) -> str:
        return f"<Copy {self.id} exam={self.exam_id} status={self.status}>"
