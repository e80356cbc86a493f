import os
from pathlib import Path


def ensure_dir(path: str | Path) -> None:
    Path(path).mkdir(parents=True, exist_ok=True)


def ffmpeg_binary() -> str:
    """
    Resolve the ffmpeg executable: FFMPEG_BIN, then the imageio-ffmpeg bundle,
    then whatever `ffmpeg` is on PATH.
    """
    ffmpeg_bin = os.environ.get("FFMPEG_BIN")
    if ffmpeg_bin:
        return ffmpeg_bin
    try:
        import imageio_ffmpeg  # type: ignore
        return imageio_ffmpeg.get_ffmpeg_exe()
    except Exception:
        return "ffmpeg"

