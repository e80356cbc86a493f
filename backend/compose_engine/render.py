import logging
import os
import shlex
import subprocess
from pathlib import Path
from typing import List, Optional

from .config import EngineConfig
from .errors import TranscodeFailure, TranscodeTimeout
from .media import measure_duration
from .schemas import KIND_IMAGE, MediaAsset, parse_resolution
from .utils import ensure_dir, ffmpeg_binary


logger = logging.getLogger(__name__)

FASTEST_PRESET = "ultrafast"
BASE_FLAGS = ["-y", "-nostdin", "-hide_banner", "-loglevel", "error"]


def _run_ffmpeg(cmd: List[str], stage: str, timeout: float) -> None:
    """
    Run ffmpeg with a wall-clock deadline. On expiry the process is killed and
    TranscodeTimeout is raised; a non-zero exit raises TranscodeFailure with
    the stderr tail.
    """
    logger.info(f"FFmpeg command ({stage}): {shlex.join(cmd)}")
    try:
        proc = subprocess.Popen(cmd, stdin=subprocess.DEVNULL, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    except OSError as e:
        raise TranscodeFailure(stage, None, str(e)) from e

    try:
        _, stderr = proc.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        proc.kill()
        proc.communicate()
        logger.error(f"FFmpeg ({stage}) killed after {timeout:g}s")
        raise TranscodeTimeout(stage, timeout)

    if proc.returncode != 0:
        stderr_tail = stderr.decode("utf-8", errors="ignore")[-2000:]
        raise TranscodeFailure(stage, proc.returncode, stderr_tail)


def fit_and_pad_filter(resolution: str) -> str:
    """Scale to fit inside resolution keeping aspect ratio, letterbox the rest in black."""
    width, height = parse_resolution(resolution)
    return (
        f"scale={width}:{height}:force_original_aspect_ratio=decrease,"
        f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2:color=black,"
        "setsar=1"
    )


def normalize_asset(asset: MediaAsset, resolution: str, work_dir: str, config: Optional[EngineConfig] = None) -> str:
    """
    Bring one downloaded asset to the target frame size.

    Videos are re-encoded to H.264/AAC and their duration is measured from the
    result. Images only get the scale+pad transform; their duration is the one
    the caller declared.
    """
    config = config or EngineConfig()
    if not asset.downloaded_path:
        raise ValueError(f"asset {asset.index} has not been downloaded")
    ensure_dir(work_dir)
    vf = fit_and_pad_filter(resolution)
    ffmpeg_bin = ffmpeg_binary()

    if asset.spec.kind == KIND_IMAGE:
        out_path = str(Path(work_dir) / f"norm_{asset.index:03d}.{asset.spec.extension}")
        cmd = [
            ffmpeg_bin, *BASE_FLAGS,
            "-i", asset.downloaded_path,
            "-vf", vf,
            "-frames:v", "1",
            out_path,
        ]
        _run_ffmpeg(cmd, f"image {asset.index}", config.image_transcode_timeout)
        asset.normalized_path = out_path
        asset.effective_duration = asset.spec.declared_duration
        return out_path

    out_path = str(Path(work_dir) / f"norm_{asset.index:03d}.mp4")
    cmd = [
        ffmpeg_bin, *BASE_FLAGS,
        "-i", asset.downloaded_path,
        "-vf", vf,
        "-c:v", "libx264", "-preset", FASTEST_PRESET,
        "-c:a", "aac",
        out_path,
    ]
    _run_ffmpeg(cmd, f"video {asset.index}", config.video_transcode_timeout)
    asset.normalized_path = out_path
    asset.effective_duration = measure_duration(out_path, config.ffprobe_bin)
    logger.info(f"Normalized video {asset.index}: {asset.effective_duration}s")
    return out_path


def write_manifest(assets: List[MediaAsset], path: str) -> str:
    """
    Concat demuxer list: one `file '<abs path>'` line per asset in order, images
    followed by `duration <seconds>`. Quotes inside paths are not escaped.
    """
    lines: List[str] = []
    for asset in assets:
        if not asset.normalized_path:
            raise ValueError(f"asset {asset.index} has not been normalized")
        lines.append(f"file '{os.path.abspath(asset.normalized_path)}'")
        if asset.spec.kind == KIND_IMAGE:
            lines.append(f"duration {asset.effective_duration:g}")
    ensure_dir(Path(path).parent)
    with open(path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")
    return path


def render_manifest(
    manifest_path: str,
    output_path: str,
    resolution: str,
    audio_path: Optional[str] = None,
    config: Optional[EngineConfig] = None,
    hold_last: Optional[float] = None,
) -> str:
    """
    Render the concat manifest (and the optional soundtrack) into output_path.

    The concat demuxer ignores the duration of the final entry, so a trailing
    still only lasts one frame; hold_last clones that frame for the given seconds.
    """
    config = config or EngineConfig()
    width, height = parse_resolution(resolution)
    ensure_dir(Path(output_path).parent)

    cmd = [ffmpeg_binary(), *BASE_FLAGS, "-f", "concat", "-safe", "0", "-i", manifest_path]
    if audio_path:
        cmd += ["-i", audio_path, "-map", "0:v:0", "-map", "1:a:0", "-shortest"]
    else:
        cmd += ["-map", "0:v:0", "-map", "0:a?"]
    if hold_last:
        cmd += ["-vf", f"tpad=stop_mode=clone:stop_duration={hold_last:g}"]
    cmd += [
        "-c:v", "libx264",
        "-pix_fmt", "yuv420p",
        "-s", f"{width}x{height}",
        "-preset", FASTEST_PRESET,
        "-crf", str(config.render_crf),
        "-c:a", "aac",
        output_path,
    ]
    _run_ffmpeg(cmd, "render", config.render_timeout)
    return output_path


def mux_video_audio(video_path: str, audio_path: str, output_path: str, config: Optional[EngineConfig] = None) -> str:
    """Simple mode: copy the video stream, re-encode audio to AAC, stop at the shorter input."""
    config = config or EngineConfig()
    ensure_dir(Path(output_path).parent)
    cmd = [
        ffmpeg_binary(), *BASE_FLAGS,
        "-i", video_path,
        "-i", audio_path,
        "-map", "0:v:0",
        "-map", "1:a:0",
        "-c:v", "copy",
        "-c:a", "aac",
        "-shortest",
        output_path,
    ]
    _run_ffmpeg(cmd, "simple", config.mux_timeout)
    return output_path


def trailing_still_duration(assets: List[MediaAsset]) -> Optional[float]:
    """Declared duration of the last asset when it is an image, else None."""
    if assets and assets[-1].spec.kind == KIND_IMAGE:
        return assets[-1].effective_duration
    return None
