"""
Error types raised by the compose pipeline.

All errors inherit from ComposeError and carry the HTTP status the server
should answer with. Validation errors are 400; everything else is a job
failure and maps to 500.
"""

from typing import Optional


class ComposeError(Exception):
    """Base exception for all compose failures."""

    status_code = 500


class ValidationError(ComposeError):
    """Request body is missing or has invalid fields. Never queued."""

    status_code = 400


class QueueUninitialized(ComposeError):
    """A submission arrived before the job queue was ready."""

    def __init__(self, message: str = "Queue not initialized"):
        super().__init__(message)


class DownloadError(ComposeError):
    """An asset could not be fetched within the retry budget."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Download failed for {url}: {reason}")


class EmptyFileError(DownloadError):
    """The transfer succeeded but produced a zero-length file."""

    def __init__(self, url: str):
        super().__init__(url, "downloaded file is empty")


class TranscodeError(ComposeError):
    """Base for failures of an external ffmpeg invocation."""

    def __init__(self, stage: str, message: str):
        self.stage = stage
        super().__init__(message)


class TranscodeTimeout(TranscodeError):
    """The process exceeded its deadline and was killed."""

    def __init__(self, stage: str, timeout: float):
        self.timeout = timeout
        super().__init__(stage, f"FFmpeg ({stage}) timed out after {timeout:g} seconds")


class TranscodeFailure(TranscodeError):
    """The process exited non-zero (or could not be started)."""

    def __init__(self, stage: str, returncode: Optional[int], stderr_tail: str = ""):
        self.returncode = returncode
        self.stderr_tail = stderr_tail
        msg = f"FFmpeg ({stage}) failed (code {returncode})"
        if stderr_tail:
            msg += f":\n{stderr_tail}"
        super().__init__(stage, msg)


class UploadFailed(ComposeError):
    """Both the multipart and the resumable upload failed."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Upload failed: {detail}")
