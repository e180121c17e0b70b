from typing import BinaryIO
from uuid import UUID

import structlog
from sqlalchemy.orm import Session

from pixform.core.config import settings
from pixform.core.messaging import get_publisher
from pixform.models import Job, JobRepository, JobStatus
from pixform.schemas import JobStatusResponse, TransformParameters

from .storage import StorageService

logger = structlog.get_logger()


def submit_job(
    db: Session,
    file_obj: BinaryIO,
    filename: str,
    params: TransformParameters | dict,
    content_type: str | None = None,
) -> Job:
    """
    Record a new image job and hand it to the workers.

    The job row is committed before the id is published, so a worker never
    receives an id it cannot load.
    """
    if not isinstance(params, TransformParameters):
        params = TransformParameters.decode(params)

    storage = StorageService()
    raw_key = storage.upload_fileobj(file_obj, settings.raw_uploads_folder, filename, content_type)

    job = Job(
        status=JobStatus.PENDING,
        raw_key=raw_key,
        parameters=params.to_record(),
        original_filename=filename,
    )
    JobRepository(db).save(job)
    db.refresh(job)

    get_publisher().publish_image_job(str(job.id))

    logger.info("job_submitted", job_id=str(job.id), raw_key=raw_key)
    return job


def get_job_status(db: Session, job_id: UUID | str) -> JobStatusResponse:
    """Status lookup for polling callers. Raises JobNotFound for unknown ids."""
    job = JobRepository(db).get(job_id)
    return JobStatusResponse.from_job(job)
