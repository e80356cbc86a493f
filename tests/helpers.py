from pathlib import Path


def write_bytes(path, data: bytes = b"\x00" * 64) -> str:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    Path(path).write_bytes(data)
    return str(path)


def fake_download(url, dest_path, config=None):
    return write_bytes(dest_path, url.encode())


def fake_ffmpeg_output(cmd, stage, timeout):
    """Stand-in for render._run_ffmpeg: create the output file (last arg)."""
    write_bytes(cmd[-1])
