"""Allocation API schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from database.models.copies import CopyStatus


class DistributeRequest(BaseModel):
    """Copies to distribute; omit ``copy_ids`` to distribute every unassigned copy of the exam."""

    copy_ids: Optional[list[int]] = Field(None, description="Copy ids to distribute, in order")

    @field_validator("copy_ids")
    @classmethod
    def non_empty(cls, v: Optional[list[int]]) -> Optional[list[int]]:
        if v is not None and not v:
            raise ValueError("copy_ids must not be empty; omit it to distribute all copies")
        return v


class Assignment(BaseModel):
    copy_id: int
    examiner_id: int


class SkippedCopy(BaseModel):
    copy_id: int
    reason: str


class DistributeResponse(BaseModel):
    assigned: list[Assignment]
    unassigned: list[int]
    skipped: list[SkippedCopy] = []


class ReallocationRequest(BaseModel):
    """Thresholds for an on-demand idle sweep."""

    idle_threshold_hours: float = Field(
        ..., ge=0, allow_inf_nan=False, description="Hours idle before reassignment"
    )
    warning_threshold_hours: float = Field(
        ..., ge=0, allow_inf_nan=False, description="Hours idle before a warning"
    )

    class Config:
        json_schema_extra = {
            "example": {"idle_threshold_hours": 24, "warning_threshold_hours": 12}
        }


class Reassignment(BaseModel):
    copy_id: int
    old_examiner_id: int
    new_examiner_id: int


class ReallocationResponse(BaseModel):
    profile: str
    warned: list[int]
    reassigned: list[Reassignment]
    unassignable: list[int]
    skipped: list[dict] = []


class ManualReallocationRequest(BaseModel):
    new_examiner_id: int


class ExaminerActionRequest(BaseModel):
    """Examiner acting on a copy they hold."""

    examiner_id: int


class ExaminerActiveRequest(BaseModel):
    is_active: bool


class RegisterExaminerRequest(BaseModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = Field(None, max_length=255)

    @field_validator("name", mode="before")
    @classmethod
    def strip_whitespace(cls, v: Optional[str]) -> Optional[str]:
        if isinstance(v, str):
            return v.strip() or None
        return v


class CopyResponse(BaseModel):
    id: int
    exam_id: int
    status: CopyStatus
    assigned_examiner_id: Optional[int] = None
    assigned_at: Optional[datetime] = None
    evaluation_started_at: Optional[datetime] = None
    last_updated_by_examiner: Optional[datetime] = None
    evaluation_completed_at: Optional[datetime] = None
    reassignment_count: int
    needs_attention: bool
    version: int

    class Config:
        from_attributes = True


class IdleCopyResponse(BaseModel):
    copy_id: int
    exam_id: int
    examiner_id: Optional[int] = None
    status: CopyStatus
    hours_idle: float


class ExaminerStatsResponse(BaseModel):
    examiner_id: int
    email: Optional[str] = None
    name: Optional[str] = None
    total_copies_assigned: int
    total_copies_evaluated: int
    total_copies_reassigned: int
    average_checking_time_hours: float
    current_workload: int
    performance_score: Optional[float] = None
    score_computed_at: Optional[datetime] = None
    last_active_at: Optional[datetime] = None
    warning_count: int
    is_active: bool

    class Config:
        from_attributes = True


class SkippedExaminer(BaseModel):
    examiner_id: int
    reason: str


class RecomputeStatsResponse(BaseModel):
    stats: list[ExaminerStatsResponse]
    skipped: list[SkippedExaminer] = []


class DailySummaryResponse(BaseModel):
    generated_at: str
    total_examiners: int
    active_examiners: int
    idle_copies: int
    pending_reassignments: list[int]
    score_distribution: dict[str, int]
    top_performers: list[dict]
    needs_attention: list[dict]
