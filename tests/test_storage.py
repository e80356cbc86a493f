import json

import pytest
import requests

from backend.compose_engine import storage
from backend.compose_engine.errors import UploadFailed


def _resp(mocker, status=200, body=None, headers=None):
    r = mocker.Mock()
    r.status_code = status
    r.headers = headers or {}
    r.text = json.dumps(body or {})
    r.json.return_value = body or {}
    if status >= 400:
        r.raise_for_status.side_effect = requests.HTTPError(f"HTTP {status}")
    else:
        r.raise_for_status.return_value = None
    return r


@pytest.fixture()
def video_file(tmp_path):
    p = tmp_path / "out.mp4"
    p.write_bytes(b"\x00" * 2048)
    return str(p)


def test_multipart_upload(mocker, video_file):
    post = mocker.patch("backend.compose_engine.storage.requests.post", return_value=_resp(mocker, body={"id": "abc"}))
    put = mocker.patch("backend.compose_engine.storage.requests.put")

    result = storage.upload(video_file, "T", "F")

    assert result.remote_file_id == "abc"
    assert result.remote_file_url == "https://drive.google.com/file/d/abc/view"
    put.assert_not_called()
    kwargs = post.call_args.kwargs
    assert post.call_args.args[0] == storage.MULTIPART_URL
    assert kwargs["headers"]["Authorization"] == "Bearer T"
    metadata = json.loads(kwargs["files"]["metadata"][1])
    assert metadata == {"name": "out.mp4", "parents": ["F"], "mimeType": "video/mp4"}


def test_falls_back_to_resumable(mocker, video_file):
    session_url = "https://upload.example/session/1"
    post = mocker.patch(
        "backend.compose_engine.storage.requests.post",
        side_effect=[
            _resp(mocker, status=401, body={"error": "auth"}),
            _resp(mocker, headers={"Location": session_url}),
        ],
    )
    put = mocker.patch("backend.compose_engine.storage.requests.put", return_value=_resp(mocker, body={"id": "xyz"}))

    result = storage.upload(video_file, "T", "F")

    assert result == storage.UploadResult.for_drive("xyz")
    assert post.call_count == 2
    assert post.call_args_list[1].args[0] == storage.RESUMABLE_URL
    assert put.call_args.args[0] == session_url
    assert put.call_args.kwargs["headers"]["Content-Length"] == "2048"


def test_network_error_also_falls_back(mocker, video_file):
    mocker.patch(
        "backend.compose_engine.storage.requests.post",
        side_effect=[requests.ConnectionError("reset"), _resp(mocker, headers={"location": "https://s/1"})],
    )
    mocker.patch("backend.compose_engine.storage.requests.put", return_value=_resp(mocker, body={"id": "n1"}))

    assert storage.upload(video_file, "T", "F").remote_file_id == "n1"


def test_both_tiers_fail(mocker, video_file):
    mocker.patch(
        "backend.compose_engine.storage.requests.post",
        side_effect=[_resp(mocker, status=500), _resp(mocker, status=200, headers={})],
    )
    put = mocker.patch("backend.compose_engine.storage.requests.put")

    with pytest.raises(UploadFailed) as exc:
        storage.upload(video_file, "T", "F")
    assert "Location" in exc.value.detail
    put.assert_not_called()


def test_missing_file_id_is_a_failure(mocker, video_file):
    mocker.patch("backend.compose_engine.storage.requests.post", side_effect=[
        _resp(mocker, body={}),
        _resp(mocker, headers={"Location": "https://s/2"}),
    ])
    mocker.patch("backend.compose_engine.storage.requests.put", return_value=_resp(mocker, status=403))

    with pytest.raises(UploadFailed):
        storage.upload(video_file, "T", "F")
