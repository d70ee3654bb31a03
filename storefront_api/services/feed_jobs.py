"""
Feed job lifecycle: status transitions and retry backoff.
"""
from datetime import datetime, timedelta
from typing import Optional

from storefront_api.models import FeedPushJob

# Seconds to wait before retry N (0-based); anything past the table waits an hour
RETRY_BACKOFF_SECONDS = [60, 300, 900, 3600, 3600]
DEFAULT_BACKOFF_SECONDS = 3600

READY_QUEUE_LIMIT = 10


def retry_delay(retry_count: int) -> int:
    if 0 <= retry_count < len(RETRY_BACKOFF_SECONDS):
        return RETRY_BACKOFF_SECONDS[retry_count]
    return DEFAULT_BACKOFF_SECONDS


def apply_status(
    job: FeedPushJob,
    new_status: str,
    now: Optional[datetime] = None,
    error_message: Optional[str] = None,
    error_code: Optional[str] = None,
    result: Optional[dict] = None,
) -> FeedPushJob:
    """
    Move ``job`` to ``new_status``.

    A failure below max_retries puts the job back in the queue with
    ``next_retry`` pushed out by the backoff for the attempt that just
    failed. Once retries are exhausted the job stays failed and is
    marked completed.
    """
    now = now or datetime.utcnow()

    if new_status == "processing":
        job.job_status = "processing"
        job.last_attempt = now

    elif new_status == "success":
        job.job_status = "success"
        job.completed_at = now
        job.result = result
        job.error_message = None
        job.error_code = None

    elif new_status == "failed":
        previous_attempts = job.retry_count or 0
        job.retry_count = previous_attempts + 1
        job.error_message = error_message
        job.error_code = error_code

        if job.retry_count < job.max_retries:
            job.job_status = "queued"
            job.next_retry = now + timedelta(seconds=retry_delay(previous_attempts))
        else:
            job.job_status = "failed"
            job.completed_at = now

    else:
        job.job_status = new_status

    return job
