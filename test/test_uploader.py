import hashlib
import os

import pytest
import requests

from upload_coordinator.client import ChunkUploader

API_URL = "http://testserver"


class RecordingHttp:
    """Forwards to the test client, remembering which chunks were sent and failing some on demand."""

    def __init__(self, client, fail_indices=()):
        self.client = client
        self.fail_indices = set(fail_indices)
        self.sent = []

    def get(self, url, **kwargs):
        return self.client.get(url, **kwargs)

    def post(self, url, **kwargs):
        if url.endswith("/upload"):
            index = int(kwargs["data"]["chunkIndex"])
            if index in self.fail_indices:
                raise requests.ConnectionError("connection dropped")
            self.sent.append(index)
        return self.client.post(url, **kwargs)


@pytest.fixture
def source_file(tmp_path):
    path = tmp_path / "payload.bin"
    path.write_bytes(os.urandom(1000))
    return path


def download(client, session_id, filename):
    response = client.get(f"{API_URL}/download", params={"sessionID": session_id, "filename": filename})
    assert response.status_code == 200
    return response.content


def test_total_chunks_rounds_up(client):
    uploader = ChunkUploader(API_URL, chunk_size=100, http=client)

    assert uploader.total_chunks(1000) == 10
    assert uploader.total_chunks(1001) == 11
    assert uploader.total_chunks(0) == 1


def test_calculate_file_hash(source_file):
    assert ChunkUploader.calculate_file_hash(str(source_file)) == hashlib.sha256(source_file.read_bytes()).hexdigest()


def test_upload_file_round_trip(client, source_file):
    uploader = ChunkUploader(API_URL, chunk_size=128, max_workers=1, http=client)

    result = uploader.upload_file(str(source_file), session_id="round-trip")

    assert result["status"] == "merged"
    assert result["chunk_count"] == 8
    assert result["sha256"] == hashlib.sha256(source_file.read_bytes()).hexdigest()
    assert download(client, "round-trip", "payload.bin") == source_file.read_bytes()


def test_failed_chunks_leave_upload_resumable(client, source_file):
    flaky = RecordingHttp(client, fail_indices={2, 5})
    uploader = ChunkUploader(API_URL, chunk_size=128, max_workers=1, http=flaky)

    assert uploader.upload_file(str(source_file), session_id="resume-me") is None
    assert uploader.get_missing("resume-me", "payload.bin", 8) == [2, 5]

    healthy = RecordingHttp(client)
    resumed = ChunkUploader(API_URL, chunk_size=128, max_workers=1, http=healthy)
    result = resumed.upload_file(str(source_file), session_id="resume-me")

    assert sorted(healthy.sent) == [2, 5]
    assert result["status"] == "merged"
    assert download(client, "resume-me", "payload.bin") == source_file.read_bytes()


def test_upload_chunk_reports_server_rejection(client):
    uploader = ChunkUploader(API_URL, http=client)

    assert uploader.upload_chunk("", "f.bin", 0, 1, b"x") is False


def test_missing_file_raises(client, tmp_path):
    uploader = ChunkUploader(API_URL, http=client)

    with pytest.raises(FileNotFoundError):
        uploader.upload_file(str(tmp_path / "nope.bin"))


def test_chunk_size_must_be_positive():
    with pytest.raises(ValueError):
        ChunkUploader(API_URL, chunk_size=0, http=object())
