"""Declarative models owned by the allocation engine."""

from database.models.copies import OPEN_STATUSES, Copy, CopyStatus
from database.models.examiners import ExamExaminer, ExaminerStats

__all__ = [
    "Copy",
    "CopyStatus",
    "OPEN_STATUSES",
    "ExamExaminer",
    "ExaminerStats",
]
