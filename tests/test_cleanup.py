import os

import pytest

from backend.compose_engine.cleanup import job_workspace, release, remove_path


def test_remove_path_is_idempotent(tmp_path):
    d = tmp_path / "work"
    (d / "nested").mkdir(parents=True)
    (d / "nested" / "f.bin").write_bytes(b"x")

    remove_path(str(d))
    remove_path(str(d))
    remove_path(None)
    assert not d.exists()


def test_remove_single_file(tmp_path):
    f = tmp_path / "out.mp4"
    f.write_bytes(b"x")
    remove_path(str(f))
    release(str(f))
    assert not f.exists()


def test_workspace_removed_on_error(tmp_path):
    seen = {}
    with pytest.raises(RuntimeError):
        with job_workspace(str(tmp_path), "job_1") as work_dir:
            seen["dir"] = work_dir
            open(os.path.join(work_dir, "partial.mp4"), "wb").close()
            raise RuntimeError("transcode failed")
    assert not os.path.exists(seen["dir"])


def test_workspaces_are_unique_per_job(tmp_path):
    with job_workspace(str(tmp_path)) as a, job_workspace(str(tmp_path)) as b:
        assert a != b
        assert os.path.isdir(a) and os.path.isdir(b)
    assert os.listdir(tmp_path) == []
