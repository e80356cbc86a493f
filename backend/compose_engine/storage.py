"""
Google Drive upload: one multipart request first, a resumable session if that fails.
"""

import json
import logging
import os
from typing import Any, Dict, Optional

import requests

from .config import EngineConfig
from .errors import UploadFailed
from .schemas import UploadResult


logger = logging.getLogger(__name__)

MULTIPART_URL = "https://www.googleapis.com/upload/drive/v3/files?uploadType=multipart"
RESUMABLE_URL = "https://www.googleapis.com/upload/drive/v3/files?uploadType=resumable"
VIDEO_MIME = "video/mp4"


def _api_ok(resp: requests.Response, ctx: str) -> Dict[str, Any]:
    try:
        resp.raise_for_status()
        return resp.json()
    except (requests.RequestException, ValueError) as e:
        raise RuntimeError(f"{ctx} | HTTP {resp.status_code} | body: {resp.text[:500]}") from e


def _file_id(body: Dict[str, Any], ctx: str) -> str:
    file_id = body.get("id")
    if not file_id:
        raise RuntimeError(f"{ctx} | response has no file id: {body}")
    return str(file_id)


def _metadata(file_path: str, folder_id: str) -> Dict[str, Any]:
    return {"name": os.path.basename(file_path), "parents": [folder_id], "mimeType": VIDEO_MIME}


def upload_multipart(file_path: str, token: str, folder_id: str, timeout: float = 600.0) -> str:
    """Metadata and bytes in a single request. Returns the Drive file id."""
    metadata = json.dumps(_metadata(file_path, folder_id))
    with open(file_path, "rb") as fh:
        files = {
            "metadata": (None, metadata, "application/json; charset=UTF-8"),
            "file": (os.path.basename(file_path), fh, VIDEO_MIME),
        }
        resp = requests.post(
            MULTIPART_URL,
            headers={"Authorization": f"Bearer {token}"},
            files=files,
            timeout=timeout,
        )
    return _file_id(_api_ok(resp, "Multipart upload failed"), "Multipart upload")


def upload_resumable(file_path: str, token: str, folder_id: str, timeout: float = 600.0) -> str:
    """Open a resumable session, then PUT the whole file to its Location."""
    size = os.path.getsize(file_path)
    init = requests.post(
        RESUMABLE_URL,
        headers={
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json; charset=UTF-8",
            "X-Upload-Content-Type": VIDEO_MIME,
            "X-Upload-Content-Length": str(size),
        },
        json=_metadata(file_path, folder_id),
        timeout=timeout,
    )
    try:
        init.raise_for_status()
    except requests.RequestException as e:
        raise RuntimeError(f"Resumable session init failed | HTTP {init.status_code} | body: {init.text[:500]}") from e
    session_url = init.headers.get("Location") or init.headers.get("location")
    if not session_url:
        raise RuntimeError("Resumable session init returned no Location header")

    with open(file_path, "rb") as fh:
        resp = requests.put(
            session_url,
            headers={"Content-Length": str(size), "Content-Type": VIDEO_MIME},
            data=fh,
            timeout=timeout,
        )
    return _file_id(_api_ok(resp, "Resumable upload failed"), "Resumable upload")


def upload(file_path: str, token: str, folder_id: str, config: Optional[EngineConfig] = None) -> UploadResult:
    """
    Ship the rendered file. Falls back exactly once to the resumable flow;
    if that also fails, UploadFailed carries the last error.
    """
    config = config or EngineConfig()
    try:
        file_id = upload_multipart(file_path, token, folder_id, timeout=config.upload_timeout)
        logger.info(f"Multipart upload finished: {file_id}")
        return UploadResult.for_drive(file_id)
    except (requests.RequestException, RuntimeError, OSError) as e:
        logger.warning(f"Multipart upload failed, falling back to resumable: {e}")

    try:
        file_id = upload_resumable(file_path, token, folder_id, timeout=config.upload_timeout)
    except (requests.RequestException, RuntimeError, OSError) as e:
        logger.error(f"Resumable upload failed: {e}")
        raise UploadFailed(str(e)) from e
    logger.info(f"Resumable upload finished: {file_id}")
    return UploadResult.for_drive(file_id)
