from uuid import UUID

import structlog
from sqlalchemy.orm import Session

from pixform.core.exceptions import JobNotFound

from .job import Job, JobEvent, JobStatus

logger = structlog.get_logger()


class JobRepository:
    """Job Store backed by a SQLAlchemy session.

    A single worker owns a job while processing it, so read-modify-save
    cycles on the same record never race each other.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, job_id: UUID | str) -> Job:
        try:
            key = job_id if isinstance(job_id, UUID) else UUID(str(job_id))
        except ValueError as e:
            raise JobNotFound(job_id) from e

        job = self.db.query(Job).filter(Job.id == key).first()
        if job is None:
            raise JobNotFound(job_id)
        return job

    def save(self, job: Job) -> Job:
        self.db.add(job)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return job

    def record_event(
        self,
        job: Job,
        event_type: str,
        old_status: JobStatus | None,
        new_status: JobStatus | None,
        data: dict | None = None,
    ) -> JobEvent:
        event = JobEvent(
            job_id=job.id,
            event_type=event_type,
            old_status=old_status,
            new_status=new_status,
            event_data=data,
        )
        self.db.add(event)
        self.db.commit()
        logger.debug("job_event_recorded", job_id=str(job.id), event_type=event_type)
        return event
