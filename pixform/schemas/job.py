from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from pixform.models.job import JobStatus


class JobStatusResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: JobStatus
    processed_key: str | None = None
    error_message: str | None = None
    created_at: datetime
    completed_at: datetime | None = None

    @classmethod
    def from_job(cls, job) -> "JobStatusResponse":
        return cls(
            id=job.id,
            status=job.status,
            processed_key=job.processed_key if job.status == JobStatus.COMPLETED else None,
            error_message=job.error_message if job.status == JobStatus.FAILED else None,
            created_at=job.created_at,
            completed_at=job.completed_at,
        )
