from .base import SessionLocal
from .job import ALLOWED_TRANSITIONS, Job, JobEvent, JobStatus
from .repository import JobRepository

__all__ = ["SessionLocal", "Job", "JobStatus", "JobEvent", "JobRepository", "ALLOWED_TRANSITIONS"]
