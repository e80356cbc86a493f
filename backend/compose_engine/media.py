import json
import logging
import os
import subprocess
import time
from typing import Any, Dict, Optional

import requests

from .config import EngineConfig
from .errors import DownloadError, EmptyFileError
from .utils import ensure_dir


logger = logging.getLogger(__name__)


def probe(path: str, ffprobe_bin: str = "ffprobe") -> Dict[str, Any]:
    """
    Use ffprobe to read basic metadata. If ffprobe is unavailable, return an empty dict.
    """
    cmd = [
        ffprobe_bin,
        "-v",
        "error",
        "-show_entries",
        "stream=codec_type,width,height",
        "-show_entries",
        "format=duration",
        "-of",
        "json",
        path,
    ]
    try:
        out = subprocess.check_output(cmd, stderr=subprocess.STDOUT, timeout=30)
        return json.loads(out.decode("utf-8"))
    except (OSError, subprocess.SubprocessError, ValueError):
        return {}


def measure_duration(path: str, ffprobe_bin: str = "ffprobe") -> Optional[float]:
    """Duration in seconds read from the container, or None if it can't be read."""
    info = probe(path, ffprobe_bin)
    raw = (info.get("format") or {}).get("duration")
    if raw not in (None, "", "N/A"):
        return float(raw)
    # No ffprobe on this host: decode through the bundled ffmpeg instead
    try:
        import imageio_ffmpeg  # type: ignore
        _, secs = imageio_ffmpeg.count_frames_and_secs(path)
        return float(secs)
    except Exception as e:
        logger.warning(f"Could not measure duration of {path}: {e}")
        return None


def backoff_delays(config: EngineConfig):
    """Sleep before each retry: start, start*factor, ... capped at backoff_max."""
    delay = config.download_backoff_start
    for _ in range(max(config.download_attempts - 1, 0)):
        yield min(delay, config.download_backoff_max)
        delay *= config.download_backoff_factor


def _fetch_once(session: requests.Session, url: str, dest_path: str, config: EngineConfig) -> None:
    with session.get(
        url,
        stream=True,
        timeout=config.download_timeout,
        allow_redirects=True,
        headers={"User-Agent": config.user_agent},
    ) as r:
        r.raise_for_status()
        with open(dest_path, "wb") as f:
            for chunk in r.iter_content(chunk_size=8192):
                if chunk:
                    f.write(chunk)
    if os.path.getsize(dest_path) == 0:
        raise EmptyFileError(url)


def download(url: str, dest_path: str, config: Optional[EngineConfig] = None) -> str:
    """
    Fetch url into dest_path, retrying with exponential backoff.
    Zero-length results count as a failed attempt.
    """
    config = config or EngineConfig()
    ensure_dir(os.path.dirname(os.path.abspath(dest_path)))

    session = requests.Session()
    session.max_redirects = config.max_redirects
    delays = backoff_delays(config)
    last_error: Optional[Exception] = None
    try:
        for attempt in range(1, config.download_attempts + 1):
            try:
                _fetch_once(session, url, dest_path, config)
                logger.info(f"Downloaded {url} -> {dest_path} (attempt {attempt})")
                return dest_path
            except (requests.RequestException, OSError, EmptyFileError) as e:
                last_error = e
                logger.warning(f"Download attempt {attempt}/{config.download_attempts} failed for {url}: {e}")
                delay = next(delays, None)
                if delay is None:
                    break
                logger.info(f"Retrying {url} in {delay:.1f}s")
                time.sleep(delay)
    finally:
        session.close()

    if isinstance(last_error, DownloadError):
        raise last_error
    raise DownloadError(url, str(last_error)) from last_error
