import os
from dataclasses import dataclass


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


@dataclass
class EngineConfig:
    """Paths, binaries and time budgets for the compose pipeline."""

    public_dir: str = "public"
    work_root: str = "temp"
    ffprobe_bin: str = "ffprobe"
    default_resolution: str = "1280x720"

    download_timeout: float = 60.0
    download_attempts: int = 3
    download_backoff_start: float = 1.0
    download_backoff_factor: float = 2.0
    download_backoff_max: float = 5.0
    max_redirects: int = 5
    user_agent: str = "Mozilla/5.0 (compatible; VideoComposer/1.0)"

    video_transcode_timeout: float = 180.0
    image_transcode_timeout: float = 30.0
    render_timeout: float = 300.0
    mux_timeout: float = 180.0
    render_crf: int = 23

    upload_timeout: float = 600.0
    callback_timeout: float = 30.0
    finalize_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> "EngineConfig":
        return cls(
            public_dir=os.environ.get("PUBLIC_DIR", "public"),
            work_root=os.environ.get("WORK_ROOT", "temp"),
            ffprobe_bin=os.environ.get("FFPROBE_BIN", "ffprobe"),
            download_timeout=_env_float("DOWNLOAD_TIMEOUT", 60.0),
            video_transcode_timeout=_env_float("VIDEO_TRANSCODE_TIMEOUT", 180.0),
            image_transcode_timeout=_env_float("IMAGE_TRANSCODE_TIMEOUT", 30.0),
            render_timeout=_env_float("RENDER_TIMEOUT", 300.0),
            mux_timeout=_env_float("MUX_TIMEOUT", 180.0),
            upload_timeout=_env_float("UPLOAD_TIMEOUT", 600.0),
            callback_timeout=_env_float("CALLBACK_TIMEOUT", 30.0),
            finalize_timeout=_env_float("FINALIZE_TIMEOUT", 30.0),
        )
