"""Allocation endpoints used by the admin screens and the examiner workflow."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from allocation.reallocation import ReallocationReport
from allocation.service import AllocationService
from api.dependencies import get_allocation_service
from api.schemas.allocation import (
    CopyResponse,
    DailySummaryResponse,
    DistributeRequest,
    DistributeResponse,
    ExaminerActionRequest,
    ExaminerActiveRequest,
    ExaminerStatsResponse,
    IdleCopyResponse,
    ManualReallocationRequest,
    ReallocationRequest,
    ReallocationResponse,
    RecomputeStatsResponse,
    RegisterExaminerRequest,
)

router = APIRouter(prefix="/allocation", tags=["allocation"])


def report_response(report: ReallocationReport) -> ReallocationResponse:
    return ReallocationResponse(
        profile=report.profile,
        warned=report.warned,
        reassigned=[
            {"copy_id": copy_id, "old_examiner_id": old, "new_examiner_id": new}
            for copy_id, old, new in report.reassigned
        ],
        unassignable=report.unassignable,
        skipped=report.skipped,
    )


@router.post(
    "/exams/{exam_id}/distribute",
    response_model=DistributeResponse,
    summary="Distribute copies of an exam",
)
async def distribute(
    exam_id: int,
    request: Optional[DistributeRequest] = None,
    service: AllocationService = Depends(get_allocation_service),
) -> DistributeResponse:
    """
    Assign unassigned copies to the exam's examiners by performance and capacity.

    - **copy_ids**: optional list of copies; all unassigned copies when omitted
    """
    copy_ids = request.copy_ids if request else None
    result = await service.distribute(exam_id, copy_ids)
    return DistributeResponse(
        assigned=[{"copy_id": c, "examiner_id": e} for c, e in result.assigned],
        unassigned=result.unassigned,
        skipped=result.skipped,
    )


@router.post(
    "/reallocate",
    response_model=ReallocationResponse,
    summary="Run an idle sweep now",
)
async def trigger_reallocation(
    request: ReallocationRequest,
    service: AllocationService = Depends(get_allocation_service),
) -> ReallocationResponse:
    """Rejected with 409 while a scheduled or on-demand sweep is running."""
    report = await service.trigger_reallocation(
        request.idle_threshold_hours, request.warning_threshold_hours
    )
    return report_response(report)


@router.post(
    "/copies/{copy_id}/reallocate",
    response_model=CopyResponse,
    summary="Move a copy to a chosen examiner",
)
async def reallocate_one(
    copy_id: int,
    request: ManualReallocationRequest,
    service: AllocationService = Depends(get_allocation_service),
) -> CopyResponse:
    copy = await service.reallocate_one(copy_id, request.new_examiner_id)
    return CopyResponse.model_validate(copy)


@router.post(
    "/stats/recompute",
    response_model=RecomputeStatsResponse,
    summary="Recompute performance scores",
)
async def recompute_stats(
    examiner_id: Optional[int] = Query(None, description="Single examiner; all when omitted"),
    service: AllocationService = Depends(get_allocation_service),
) -> RecomputeStatsResponse:
    result = await service.recompute_stats(examiner_id)
    return RecomputeStatsResponse(
        stats=[ExaminerStatsResponse.model_validate(s) for s in result.stats],
        skipped=result.skipped,
    )


@router.put(
    "/examiners/{examiner_id}",
    response_model=ExaminerStatsResponse,
    summary="Register an examiner or update their contact details",
)
async def register_examiner(
    examiner_id: int,
    request: RegisterExaminerRequest,
    service: AllocationService = Depends(get_allocation_service),
) -> ExaminerStatsResponse:
    stats = await service.register_examiner(examiner_id, email=request.email, name=request.name)
    return ExaminerStatsResponse.model_validate(stats)


@router.post(
    "/examiners/{examiner_id}/active",
    response_model=ExaminerStatsResponse,
    summary="Activate or deactivate an examiner",
)
async def set_examiner_active(
    examiner_id: int,
    request: ExaminerActiveRequest,
    service: AllocationService = Depends(get_allocation_service),
) -> ExaminerStatsResponse:
    stats = await service.set_examiner_active(examiner_id, request.is_active)
    return ExaminerStatsResponse.model_validate(stats)


@router.get(
    "/idle-copies",
    response_model=list[IdleCopyResponse],
    summary="Copies idle for at least the given hours",
)
async def list_idle_copies(
    idle_hours: float = Query(24, description="Minimum hours idle"),
    service: AllocationService = Depends(get_allocation_service),
) -> list[IdleCopyResponse]:
    idle = await service.list_idle_copies(idle_hours)
    return [
        IdleCopyResponse(
            copy_id=item.copy.id,
            exam_id=item.copy.exam_id,
            examiner_id=item.copy.assigned_examiner_id,
            status=item.copy.status,
            hours_idle=item.hours_idle,
        )
        for item in idle
    ]


@router.get(
    "/performance-dashboard",
    response_model=list[ExaminerStatsResponse],
    summary="Examiner stats ordered by stored score",
)
async def get_performance_dashboard(
    service: AllocationService = Depends(get_allocation_service),
) -> list[ExaminerStatsResponse]:
    stats = await service.get_performance_dashboard()
    return [ExaminerStatsResponse.model_validate(s) for s in stats]


@router.get(
    "/summary",
    response_model=DailySummaryResponse,
    summary="Allocation summary for administrators",
)
async def daily_summary(
    service: AllocationService = Depends(get_allocation_service),
) -> DailySummaryResponse:
    return DailySummaryResponse(**await service.daily_summary())


@router.post("/copies/{copy_id}/start", response_model=CopyResponse)
async def start_evaluation(
    copy_id: int,
    request: ExaminerActionRequest,
    service: AllocationService = Depends(get_allocation_service),
) -> CopyResponse:
    copy = await service.start_evaluation(copy_id, request.examiner_id)
    return CopyResponse.model_validate(copy)


@router.post("/copies/{copy_id}/activity", response_model=CopyResponse)
async def record_activity(
    copy_id: int,
    request: ExaminerActionRequest,
    service: AllocationService = Depends(get_allocation_service),
) -> CopyResponse:
    copy = await service.record_activity(copy_id, request.examiner_id)
    return CopyResponse.model_validate(copy)


@router.post(
    "/copies/{copy_id}/complete",
    response_model=CopyResponse,
    status_code=status.HTTP_200_OK,
)
async def complete_evaluation(
    copy_id: int,
    request: ExaminerActionRequest,
    service: AllocationService = Depends(get_allocation_service),
) -> CopyResponse:
    copy = await service.complete_evaluation(copy_id, request.examiner_id)
    return CopyResponse.model_validate(copy)
