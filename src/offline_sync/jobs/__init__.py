"""Long-running job submission and polling."""

from offline_sync.jobs.models import JobRecord, JobSnapshot, JobStatus
from offline_sync.jobs.poller import JobObservation, JobPoller

__all__ = ["JobObservation", "JobPoller", "JobRecord", "JobSnapshot", "JobStatus"]
