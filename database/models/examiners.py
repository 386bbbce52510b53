"""
Examiners Module

Per-examiner workload counters and performance data owned by the allocation
engine, plus the exam panel (which examiners may receive copies of an exam).
"""

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Float,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from core.utils.datetime import now
from database.engine import Base
from database.types import UTCDateTime

ID_TYPE = BigInteger().with_variant(Integer, "sqlite")


class ExaminerStats(Base):
    """
    Lifetime counters and derived score for one examiner.

    ``current_workload`` always equals
    ``total_copies_assigned - total_copies_evaluated - total_copies_reassigned``;
    only the store's counter operations mutate these columns.
    """

    __tablename__ = "examiner_stats"

    examiner_id: Mapped[int] = mapped_column(
        ID_TYPE, primary_key=True, autoincrement=False
    )
    email: Mapped[str | None] = mapped_column(String(255))
    name: Mapped[str | None] = mapped_column(String(255))

    total_copies_assigned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_copies_evaluated: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_copies_reassigned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    average_checking_time_hours: Mapped[float] = mapped_column(
        Float, default=0.0, nullable=False
    )
    current_workload: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Derived; written only by score recomputation
    performance_score: Mapped[float | None] = mapped_column(Float)
    score_computed_at: Mapped[datetime | None] = mapped_column(UTCDateTime)

    last_active_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    warning_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=now, onupdate=now, nullable=False
    )

    __table_args__ = (
        Index("idx_examiner_stats_active_score", "is_active", "performance_score"),
        CheckConstraint("current_workload >= 0", name="ck_examiner_stats_workload_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<ExaminerStats {self.examiner_id} workload={self.current_workload} "
            f"score={self.performance_score}>"
        )


class ExamExaminer(Base):
    """Exam panel membership, maintained by the exam administration screens."""

    __tablename__ = "exam_examiners"

    exam_id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=False)
    examiner_id: Mapped[int] = mapped_column(
        ID_TYPE, primary_key=True, autoincrement=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=now, nullable=False)
