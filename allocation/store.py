"""
Stats store: the only write path for examiner counters and copy allocation state.

Counter changes are single ``UPDATE ... SET col = col + n`` statements so
each one is an atomic read-modify-write on the examiner row. Copy changes are
conditional on the version the caller read; a lost race raises
``CopyConflictError`` and rolls back the whole unit of work, including any
counter changes made in it.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Iterable

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from allocation.exceptions import (
    CopyConflictError,
    CopyNotFoundError,
    ExaminerNotFoundError,
)
from database.models.copies import OPEN_STATUSES, Copy, CopyStatus
from database.models.examiners import ExamExaminer, ExaminerStats

logger = logging.getLogger(__name__)


class StoreTransaction:
    """Unit of work over one database transaction."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ==================== Examiner stats ==================== #

    async def get_stats(self, examiner_id: int) -> ExaminerStats | None:
        return await self.session.get(ExaminerStats, examiner_id, populate_existing=True)

    async def require_stats(self, examiner_id: int) -> ExaminerStats:
        stats = await self.get_stats(examiner_id)
        if stats is None:
            raise ExaminerNotFoundError(examiner_id)
        return stats

    async def list_stats(self, examiner_ids: Iterable[int] | None = None) -> list[ExaminerStats]:
        query = select(ExaminerStats).execution_options(populate_existing=True)
        if examiner_ids is not None:
            query = query.where(ExaminerStats.examiner_id.in_(list(examiner_ids)))
        result = await self.session.execute(query.order_by(ExaminerStats.examiner_id))
        return list(result.scalars().all())

    async def upsert_examiner(
        self, examiner_id: int, email: str | None = None, name: str | None = None
    ) -> ExaminerStats:
        stats = await self.get_stats(examiner_id)
        if stats is None:
            stats = ExaminerStats(examiner_id=examiner_id, email=email, name=name)
            self.session.add(stats)
        else:
            if email is not None:
                stats.email = email
            if name is not None:
                stats.name = name
        await self.session.flush()
        return stats

    async def ensure_stats(self, examiner_id: int) -> ExaminerStats:
        """Create a zeroed stats row for an examiner seen for the first time."""
        stats = await self.get_stats(examiner_id)
        if stats is None:
            logger.info(f"Creating stats record for examiner {examiner_id}")
            stats = await self.upsert_examiner(examiner_id)
        return stats

    async def exam_examiner_ids(self, exam_id: int) -> list[int]:
        result = await self.session.execute(
            select(ExamExaminer.examiner_id)
            .where(ExamExaminer.exam_id == exam_id)
            .order_by(ExamExaminer.examiner_id)
        )
        return list(result.scalars().all())

    async def _update_stats(self, examiner_id: int, **values) -> None:
        result = await self.session.execute(
            update(ExaminerStats)
            .where(ExaminerStats.examiner_id == examiner_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ExaminerNotFoundError(examiner_id)

    async def record_assignment(self, examiner_id: int, count: int = 1) -> None:
        await self._update_stats(
            examiner_id,
            total_copies_assigned=ExaminerStats.total_copies_assigned + count,
            current_workload=ExaminerStats.current_workload + count,
        )

    async def record_reassigned_away(self, examiner_id: int) -> None:
        await self._update_stats(
            examiner_id,
            total_copies_reassigned=ExaminerStats.total_copies_reassigned + 1,
            current_workload=ExaminerStats.current_workload - 1,
        )

    async def record_evaluation(self, examiner_id: int, checking_hours: float) -> None:
        """Count one evaluated copy and fold its checking time into the running mean."""
        evaluated = ExaminerStats.total_copies_evaluated
        await self._update_stats(
            examiner_id,
            average_checking_time_hours=(
                ExaminerStats.average_checking_time_hours * evaluated + checking_hours
            )
            / (evaluated + 1),
            total_copies_evaluated=evaluated + 1,
            current_workload=ExaminerStats.current_workload - 1,
        )

    async def record_warning(self, examiner_id: int) -> None:
        await self._update_stats(
            examiner_id, warning_count=ExaminerStats.warning_count + 1
        )

    async def touch_examiner(self, examiner_id: int, at: datetime) -> None:
        await self._update_stats(examiner_id, last_active_at=at)

    async def save_score(self, examiner_id: int, score: float, at: datetime) -> None:
        await self._update_stats(
            examiner_id, performance_score=score, score_computed_at=at
        )

    async def set_active(self, examiner_id: int, is_active: bool) -> None:
        await self._update_stats(examiner_id, is_active=is_active)

    # ==================== Copies ==================== #

    async def get_copy(self, copy_id: int) -> Copy | None:
        return await self.session.get(Copy, copy_id, populate_existing=True)

    async def require_copy(self, copy_id: int) -> Copy:
        copy = await self.get_copy(copy_id)
        if copy is None:
            raise CopyNotFoundError(copy_id)
        return copy

    async def add_copy(self, exam_id: int, copy_id: int | None = None) -> Copy:
        copy = Copy(id=copy_id, exam_id=exam_id, status=CopyStatus.UNASSIGNED)
        self.session.add(copy)
        await self.session.flush()
        return copy

    async def list_copies(self, copy_ids: Iterable[int]) -> list[Copy]:
        result = await self.session.execute(
            select(Copy)
            .where(Copy.id.in_(list(copy_ids)))
            .order_by(Copy.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_unassigned_copies(self, exam_id: int) -> list[Copy]:
        result = await self.session.execute(
            select(Copy)
            .where(Copy.exam_id == exam_id, Copy.status == CopyStatus.UNASSIGNED)
            .order_by(Copy.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_open_copies(self) -> list[Copy]:
        """Assigned or examining copies that have a holder."""
        result = await self.session.execute(
            select(Copy)
            .where(
                Copy.status.in_(OPEN_STATUSES),
                Copy.assigned_examiner_id.is_not(None),
            )
            .order_by(Copy.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_attention_copies(self) -> list[Copy]:
        result = await self.session.execute(
            select(Copy)
            .where(Copy.needs_attention.is_(True), Copy.status == CopyStatus.UNASSIGNED)
            .order_by(Copy.id)
        )
        return list(result.scalars().all())

    async def update_copy(self, copy: Copy, **values) -> int:
        """
        Apply ``values`` only if the copy still has the version it was read at.

        ``copy`` is reloaded afterwards; returns the new version.
        """
        new_version = copy.version + 1
        result = await self.session.execute(
            update(Copy)
            .where(Copy.id == copy.id, Copy.version == copy.version)
            .values(version=new_version, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise CopyConflictError(copy.id)
        await self.session.refresh(copy)
        return new_version


class StatsStore:
    """
    Injectable entry point to the allocation tables.

    Usage:
        store = StatsStore(AsyncSessionLocal)
        async with store.transaction() as tx:
            stats = await tx.require_stats(examiner_id)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreTransaction]:
        async with self._session_factory() as session:
            async with session.begin():
                yield StoreTransaction(session)
