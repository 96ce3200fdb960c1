from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class JobStatus(str, Enum):
    QUEUED = "queued"
    WORKING = "working"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    @property
    def rank(self) -> int:
        if self is JobStatus.QUEUED:
            return 0
        if self is JobStatus.WORKING:
            return 1
        return 2


_SERVER_STATUSES = {
    "queued": JobStatus.QUEUED,
    "working": JobStatus.WORKING,
    "running": JobStatus.WORKING,
    "complete": JobStatus.COMPLETED,
    "completed": JobStatus.COMPLETED,
    "failed": JobStatus.FAILED,
}


def parse_server_status(raw: Any) -> Optional[JobStatus]:
    """Map a status string from the jobs API. Unrecognised values (e.g. "unknown") map to None."""
    if not isinstance(raw, str):
        return None
    return _SERVER_STATUSES.get(raw.strip().lower())


def clamp_progress(raw: Any) -> int:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return 0
    return max(0, min(100, int(raw)))


@dataclass(frozen=True, slots=True)
class JobSnapshot:
    job_id: str
    status: JobStatus
    progress: int
    result: Any = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


@dataclass(slots=True)
class JobRecord:
    job_id: str
    status: JobStatus
    created_at: float
    progress: int = 0
    result: Any = None
    error: Optional[str] = None
    last_polled_at: Optional[float] = None

    def snapshot(self) -> JobSnapshot:
        return JobSnapshot(
            job_id=self.job_id,
            status=self.status,
            progress=self.progress,
            result=self.result,
            error=self.error,
        )
