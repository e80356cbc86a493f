import logging
import os
import shutil
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .utils import ensure_dir


logger = logging.getLogger(__name__)


def remove_path(path: Optional[str]) -> None:
    """Remove a file or directory tree. Missing paths are ignored."""
    if not path:
        return
    p = Path(path)
    try:
        if p.is_dir() and not p.is_symlink():
            shutil.rmtree(p)
        else:
            p.unlink()
    except FileNotFoundError:
        pass


def release(path: Optional[str]) -> None:
    """remove_path that logs instead of raising, for use on exit paths."""
    try:
        remove_path(path)
    except OSError as e:
        logger.warning(f"Failed to remove {path}: {e}")


def new_work_dir(work_root: str, job_id: Optional[str] = None) -> str:
    suffix = job_id or uuid.uuid4().hex
    path = os.path.join(work_root, suffix)
    ensure_dir(path)
    return path


@contextmanager
def job_workspace(work_root: str, job_id: Optional[str] = None) -> Iterator[str]:
    """
    Yield a fresh per-job directory under work_root and remove it on every exit path.
    """
    work_dir = new_work_dir(work_root, job_id)
    try:
        yield work_dir
    finally:
        release(work_dir)
