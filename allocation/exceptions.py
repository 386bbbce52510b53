"""Errors raised by the allocation engine."""


class AllocationError(Exception):
    """Base class for allocation engine errors."""

    code = "ALLOCATION_ERROR"
    retryable = False


class InvalidThresholdsError(AllocationError, ValueError):
    """Idle/warning thresholds are negative or not ordered warning < idle."""

    code = "INVALID_THRESHOLDS"


class CopyConflictError(AllocationError):
    """
    Another operation changed the copy first.

    The caller must re-read the copy before retrying; the losing write has
    been rolled back.
    """

    code = "COPY_CONFLICT"
    retryable = True

    def __init__(self, copy_id: int, message: str | None = None):
        self.copy_id = copy_id
        super().__init__(message or f"Copy {copy_id} was modified concurrently")


class JobAlreadyRunningError(AllocationError):
    """The requested job holds its guard; on-demand runs are rejected, not queued."""

    code = "JOB_ALREADY_RUNNING"

    def __init__(self, job_name: str):
        self.job_name = job_name
        super().__init__(f"Job '{job_name}' is already running")


class CopyNotFoundError(AllocationError, LookupError):
    code = "COPY_NOT_FOUND"

    def __init__(self, copy_id: int):
        self.copy_id = copy_id
        super().__init__(f"Copy {copy_id} not found")


class ExaminerNotFoundError(AllocationError, LookupError):
    code = "EXAMINER_NOT_FOUND"

    def __init__(self, examiner_id: int):
        self.examiner_id = examiner_id
        super().__init__(f"Examiner {examiner_id} has no stats record")


class ExaminerInactiveError(AllocationError):
    code = "EXAMINER_INACTIVE"

    def __init__(self, examiner_id: int):
        self.examiner_id = examiner_id
        super().__init__(f"Examiner {examiner_id} is not active")


class InvalidCopyStateError(AllocationError):
    """The copy's lifecycle status does not allow the requested transition."""

    code = "INVALID_COPY_STATE"


class NotCopyHolderError(AllocationError):
    """An examiner acted on a copy they do not currently hold."""

    code = "NOT_COPY_HOLDER"

    def __init__(self, copy_id: int, examiner_id: int):
        self.copy_id = copy_id
        self.examiner_id = examiner_id
        super().__init__(f"Examiner {examiner_id} does not hold copy {copy_id}")


class StatsInconsistencyError(AllocationError):
    """An examiner's counters contradict the copies they hold."""

    code = "STATS_INCONSISTENCY"

    def __init__(self, examiner_id: int, message: str):
        self.examiner_id = examiner_id
        super().__init__(message)
