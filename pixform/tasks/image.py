import shutil
import tempfile
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path

import redis
import structlog

from pixform.core.config import settings
from pixform.models import Job, JobRepository, JobStatus, SessionLocal
from pixform.schemas import CompressionStrategy, TransformParameters
from pixform.services import ProcessExecutor, QualitySearch, StorageService, get_image_tool

logger = structlog.get_logger()
redis_client = redis.from_url(settings.redis_url)


def acquire_lock(job_id: str, timeout: int | None = None) -> redis.lock.Lock | None:
    """Acquire the per-job lock that keeps a single worker on each job."""
    lock = redis_client.lock(f"lock:job:{job_id}", timeout=timeout or settings.lock_timeout_seconds)
    if lock.acquire(blocking=False):
        return lock
    return None


def process_image(job_id: str) -> dict:
    """Run one processing attempt for a job. Raises JobNotFound for unknown ids."""
    logger.info("processing_started", job_id=job_id)

    lock = acquire_lock(job_id)
    if not lock:
        logger.info("locked_skipped", job_id=job_id)
        return {"status": "skipped", "reason": "locked"}

    db = SessionLocal()
    repo = JobRepository(db)

    try:
        job = repo.get(job_id)

        # Redelivered messages find the job already past PENDING.
        if job.status != JobStatus.PENDING:
            logger.info("not_pending_skipped", job_id=job_id, status=job.status.value)
            return {"status": "skipped", "reason": job.status.value}

        previous = job.transition_to(JobStatus.PROCESSING)
        job.started_at = datetime.now(timezone.utc)
        repo.save(job)
        repo.record_event(job, "PROCESSING_STARTED", previous, JobStatus.PROCESSING)

        return _run(repo, job)

    finally:
        try:
            lock.release()
        except redis.exceptions.LockError:
            pass
        db.close()


def _run(repo: JobRepository, job: Job) -> dict:
    job_id = str(job.id)
    start_time = time.time()
    workspace: Path | None = None

    try:
        workspace = Path(tempfile.mkdtemp(prefix=f"pixform-{job_id}-", dir=settings.work_dir))
        params, output = _produce_output(job, workspace)

        storage = StorageService()
        processed_key = storage.upload_file(str(output), settings.processed_files_folder, params.output_format)
        output_size = output.stat().st_size

        job.transition_to(JobStatus.COMPLETED)
        job.processed_key = processed_key
        job.output_size_bytes = output_size
        job.error_code = None
        job.error_message = None

        logger.info("processing_completed", job_id=job_id, processed_key=processed_key, size=output_size)
        result = {
            "status": "success",
            "job_id": job_id,
            "processed_key": processed_key,
            "output_size_bytes": output_size,
        }

    except Exception as e:
        error_code = getattr(e, "error_code", "PROCESSING_ERROR")
        logger.error("processing_failed", job_id=job_id, error_code=error_code, error=str(e))

        job.transition_to(JobStatus.FAILED)
        job.processed_key = None
        job.error_code = error_code
        job.error_message = str(e)[:500]

        result = {"status": "failed", "job_id": job_id, "error": str(e), "error_code": error_code}

    finally:
        job.completed_at = datetime.now(timezone.utc)
        job.processing_time_seconds = int(time.time() - start_time)
        try:
            repo.save(job)
        finally:
            if workspace is not None:
                _release_workspace(workspace)

    repo.record_event(
        job,
        "PROCESSING_COMPLETED" if job.status == JobStatus.COMPLETED else "PROCESSING_FAILED",
        JobStatus.PROCESSING,
        job.status,
        {"processing_time": job.processing_time_seconds, "error_code": job.error_code},
    )
    return result


def _produce_output(job: Job, workspace: Path) -> tuple[TransformParameters, Path]:
    """Download the raw asset and transform it. May return the raw file itself."""
    job_id = str(job.id)

    raw_path = workspace / f"raw-{uuid.uuid4().hex}{Path(job.raw_key).suffix}"
    StorageService().download_file(job.raw_key, str(raw_path))

    params = TransformParameters.decode(job.parameters)
    window = params.size_window()

    if window is not None:
        min_bytes, max_bytes = window
        current_size = raw_path.stat().st_size
        if min_bytes <= current_size <= max_bytes:
            logger.info(
                "processing_skipped_within_window",
                job_id=job_id,
                size=current_size,
                min_bytes=min_bytes,
                max_bytes=max_bytes,
            )
            return params, raw_path

    tool = get_image_tool()
    executor = ProcessExecutor()

    if params.compression_strategy() is CompressionStrategy.SIZE_WINDOW:
        logger.info("quality_search_started", job_id=job_id, tool=tool.name, min_bytes=window[0], max_bytes=window[1])
        search = QualitySearch(tool, executor)
        return params, search.search(params, raw_path, window[0], window[1], workspace)

    output_path = workspace / f"out-{uuid.uuid4().hex}.{params.output_format}"
    executor.run(tool.build_command(params, str(raw_path), str(output_path)))
    return params, output_path


def _release_workspace(workspace: Path) -> None:
    """Remove the job's temporary files. Failures are logged, never raised."""
    if not workspace.exists():
        return
    try:
        shutil.rmtree(workspace)
    except OSError as e:
        logger.warning("workspace_cleanup_failed", path=str(workspace), error=str(e))
