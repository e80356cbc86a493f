import logging
from typing import Optional

import requests

from .schemas import UploadResult


logger = logging.getLogger(__name__)


def send_callback(callback_url: Optional[str], correlation_id: Optional[str], result: UploadResult, timeout: float = 30.0) -> bool:
    """
    Best-effort POST of the job result. Never raises; returns whether it was delivered.
    """
    if not callback_url:
        return False
    payload = {
        "configId": correlation_id,
        "driveFileId": result.remote_file_id,
        "driveFileUrl": result.remote_file_url,
    }
    try:
        resp = requests.post(callback_url, json=payload, timeout=timeout)
        resp.raise_for_status()
    except Exception as e:
        logger.error(f"Callback to {callback_url} failed: {e}")
        return False
    logger.info(f"Callback sent to {callback_url}. Response: {resp.text[:200]}")
    return True
