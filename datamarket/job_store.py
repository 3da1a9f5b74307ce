"""Publish job status, kept in process memory and lost on restart."""

import logging
from datetime import datetime, timezone
from typing import Dict

from .models.api_models import PublishJobStatus

logger = logging.getLogger(__name__)

_publish_jobs: Dict[str, PublishJobStatus] = {}


def get_job(job_id: str) -> PublishJobStatus | None:
    return _publish_jobs.get(job_id)


def store_job(job: PublishJobStatus):
    if not job.job_id:
        raise ValueError("Publish job has no job_id")
    _publish_jobs[job.job_id] = job


def record_step(job_id: str, step: str):
    """Appends a publish step to the job's history and makes it the current status."""
    job = get_job(job_id)
    if job is None:
        logger.warning(f"Dropping step {step} of unknown publish job {job_id}")
        return
    job.steps.append(step)
    update_job_status(job_id, step)


def update_job_status(job_id: str, status: str, message: str | None = None, **fields):
    """Sets status and message; ``fields`` name further ``PublishJobStatus`` attributes such as ``did``."""
    job = get_job(job_id)
    if job is None:
        logger.warning(f"Dropping status {status} of unknown publish job {job_id}")
        return

    unknown = [name for name in fields if name not in PublishJobStatus.model_fields]
    if unknown:
        raise ValueError(f"PublishJobStatus has no fields {unknown}")

    job.status = status
    job.message = message
    job.updated_at = datetime.now(timezone.utc)
    for name, value in fields.items():
        setattr(job, name, value)
    logger.info(f"Publish job {job_id} is now {status}")
