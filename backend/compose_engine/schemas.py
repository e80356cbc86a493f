from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import re
import threading
import time

from werkzeug.utils import secure_filename

from .errors import ValidationError


MODE_SIMPLE = "simple"
MODE_COMPOSITE = "composite"

KIND_VIDEO = "video"
KIND_IMAGE = "image"

DEFAULT_RESOLUTION = "1280x720"
DRIVE_VIEW_URL = "https://drive.google.com/file/d/{file_id}/view"
FORMAT_RE = re.compile(r"[A-Za-z0-9]+")


@dataclass
class AssetSpec:
    url: str
    kind: str = KIND_VIDEO
    format: Optional[str] = None
    declared_duration: Optional[float] = None

    @property
    def extension(self) -> str:
        if self.format:
            return self.format.lower()
        return "jpg" if self.kind == KIND_IMAGE else "mp4"


@dataclass
class JobRequest:
    output_file_name: str
    storage_token: str
    storage_folder_id: str
    mode: str = MODE_COMPOSITE
    media_assets: List[AssetSpec] = field(default_factory=list)
    video_url: Optional[str] = None
    audio_url: Optional[str] = None
    resolution: str = DEFAULT_RESOLUTION
    callback_url: Optional[str] = None
    correlation_id: Optional[str] = None


@dataclass
class MediaAsset:
    spec: AssetSpec
    index: int
    downloaded_path: Optional[str] = None
    normalized_path: Optional[str] = None
    effective_duration: Optional[float] = None


@dataclass
class UploadResult:
    remote_file_id: str
    remote_file_url: str

    @classmethod
    def for_drive(cls, file_id: str) -> "UploadResult":
        return cls(remote_file_id=file_id, remote_file_url=DRIVE_VIEW_URL.format(file_id=file_id))


@dataclass(frozen=True)
class JobOutcome:
    """Terminal result of one job: either an upload or the error that stopped it."""

    result: Optional[UploadResult] = None
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.result is not None


@dataclass
class Job:
    id: str
    request: JobRequest
    work_dir: Optional[str] = None
    assets: List[MediaAsset] = field(default_factory=list)
    optional_audio_path: Optional[str] = None
    output_path: Optional[str] = None
    status: str = "queued"
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())
    error: Optional[str] = None
    outcome: Optional[JobOutcome] = None
    # set once the submitter has built its response; the worker waits on it
    finalized: threading.Event = field(default_factory=threading.Event, repr=False, compare=False)


def parse_resolution(resolution: str) -> tuple[int, int]:
    try:
        w, h = resolution.lower().split("x", 1)
        width, height = int(w), int(h)
    except (AttributeError, ValueError):
        raise ValidationError(f"Invalid resolution: {resolution!r}")
    if width <= 0 or height <= 0:
        raise ValidationError(f"Invalid resolution: {resolution!r}")
    return width, height


def _asset_from_payload(idx: int, item: Any) -> AssetSpec:
    if not isinstance(item, dict) or not item.get("url"):
        raise ValidationError(f"mediaUrls[{idx}] must be an object with a 'url'")
    kind = str(item.get("type") or KIND_VIDEO).lower()
    if kind not in (KIND_VIDEO, KIND_IMAGE):
        raise ValidationError(f"mediaUrls[{idx}].type must be 'video' or 'image'")

    duration = item.get("duration")
    if duration is not None:
        try:
            duration = float(duration)
        except (TypeError, ValueError):
            raise ValidationError(f"mediaUrls[{idx}].duration must be a number")
    if kind == KIND_IMAGE and (duration is None or duration <= 0):
        raise ValidationError(f"mediaUrls[{idx}] is an image and needs a positive duration")

    fmt = item.get("format") or None
    if fmt is not None and not FORMAT_RE.fullmatch(str(fmt)):
        raise ValidationError(f"mediaUrls[{idx}].format must be alphanumeric")

    return AssetSpec(
        url=str(item["url"]),
        kind=kind,
        format=str(fmt) if fmt is not None else None,
        declared_duration=duration,
    )


def job_request_from_payload(data: Any) -> JobRequest:
    """
    Validate a /generate-video body and build the JobRequest.
    Raises ValidationError for anything the pipeline should never see.
    """
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    config = data.get("config")
    token = data.get("driveAccessToken")
    folder_id = data.get("driveFolderId")
    if not isinstance(config, dict) or not config.get("outputFile") or not token:
        raise ValidationError("Invalid configuration or missing parameters")
    if not isinstance(folder_id, str) or not folder_id.strip():
        raise ValidationError("driveFolderId is required")

    output_name = secure_filename(str(config["outputFile"]))
    if not output_name:
        raise ValidationError("outputFile is not a usable file name")

    media_urls = config.get("mediaUrls")
    video_url = config.get("videoUrl")
    audio_url = config.get("audioUrl")
    has_media = isinstance(media_urls, list) and len(media_urls) > 0

    if has_media and video_url:
        raise ValidationError("Provide either mediaUrls or videoUrl/audioUrl, not both")
    if not has_media and not (video_url and audio_url):
        raise ValidationError("No media content provided")

    resolution = config.get("resolution") or DEFAULT_RESOLUTION
    parse_resolution(resolution)

    config_id = config.get("configId")
    req = JobRequest(
        output_file_name=output_name,
        storage_token=str(token),
        storage_folder_id=folder_id,
        resolution=resolution,
        callback_url=data.get("callbackUrl") or None,
        correlation_id=str(config_id) if config_id is not None else None,
    )
    if has_media:
        req.mode = MODE_COMPOSITE
        req.media_assets = [_asset_from_payload(i, item) for i, item in enumerate(media_urls)]
        req.audio_url = audio_url or None
    else:
        req.mode = MODE_SIMPLE
        req.video_url = str(video_url)
        req.audio_url = str(audio_url)
    return req


def outcome_payload(outcome: JobOutcome) -> Dict[str, Any]:
    if outcome.result is None:
        raise ValueError("outcome has no upload result")
    return {
        "success": True,
        "driveFileId": outcome.result.remote_file_id,
        "driveFileUrl": outcome.result.remote_file_url,
    }
