"""
Media compose engine: fetch remote images and clips, normalize them with
ffmpeg, render one video, upload it to Google Drive and report back. Jobs run
one at a time through an in-memory queue.
"""

from .config import EngineConfig
from .errors import ComposeError, QueueUninitialized, ValidationError
from .schemas import JobOutcome, JobRequest, job_request_from_payload
from .worker import JobManager

__all__ = [
    "ComposeError",
    "EngineConfig",
    "JobManager",
    "JobOutcome",
    "JobRequest",
    "QueueUninitialized",
    "ValidationError",
    "job_request_from_payload",
]
