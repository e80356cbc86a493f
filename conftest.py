import os
import shutil
import tempfile
import pytest


@pytest.fixture()
def engine_config():
    from backend.compose_engine import EngineConfig

    tmpdir = tempfile.mkdtemp(prefix="compose_")
    config = EngineConfig(
        public_dir=os.path.join(tmpdir, "public"),
        work_root=os.path.join(tmpdir, "temp"),
        download_backoff_start=0.0,
    )
    yield config
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture()
def manager(engine_config):
    from backend.compose_engine import JobManager

    jm = JobManager(engine_config)
    jm.start()
    yield jm
    jm.stop(timeout=5)


@pytest.fixture()
def app_client(manager, monkeypatch):
    # Import after env is set
    from backend import server

    monkeypatch.setattr(server, "job_manager", manager)
    server.app.config.update({"TESTING": True})
    return server.app.test_client()


@pytest.fixture()
def pipeline(mocker):
    """Replace network and ffmpeg with fakes that only create files."""
    from backend.compose_engine.schemas import UploadResult
    from tests.helpers import fake_download, fake_ffmpeg_output

    return {
        "download": mocker.patch("backend.compose_engine.media.download", side_effect=fake_download),
        "ffmpeg": mocker.patch("backend.compose_engine.render._run_ffmpeg", side_effect=fake_ffmpeg_output),
        "measure": mocker.patch("backend.compose_engine.render.measure_duration", return_value=3.0),
        "upload": mocker.patch(
            "backend.compose_engine.storage.upload", return_value=UploadResult.for_drive("file123")
        ),
        "callback": mocker.patch("backend.compose_engine.notify.requests.post"),
    }
