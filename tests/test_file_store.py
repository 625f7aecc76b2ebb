import pytest
import requests

from resume_screener.core.exceptions import UpstreamFetchError
from resume_screener.services.file_store import FileStore


class FakeResponse:
    def __init__(self, status_code, content=b""):
        self.status_code = status_code
        self.content = content

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")


def test_saved_file_round_trips(file_store):
    url = file_store.save("recruiter-1", "Jane Doe CV.pdf", b"%PDF-1.4 body")

    assert url.startswith("local://recruiter-1/Jane_Doe_CV-")
    assert url.endswith(".pdf")
    assert file_store.fetch(url) == b"%PDF-1.4 body"


def test_local_reference_cannot_escape_storage(file_store):
    with pytest.raises(UpstreamFetchError):
        file_store.fetch("local://../../etc/passwd")


def test_relative_reference_uses_service_endpoint_and_credential(tmp_path, monkeypatch):
    seen = {}

    def fake_get(url, headers=None, timeout=None):
        seen.update(url=url, headers=headers, timeout=timeout)
        return FakeResponse(200, b"resume bytes")

    monkeypatch.setattr(requests, "get", fake_get)
    store = FileStore(
        storage_dir=str(tmp_path),
        service_endpoint="https://storage.example/files",
        service_credential="secret-token",
        timeout=5,
    )

    assert store.fetch("resumes/jane.pdf") == b"resume bytes"
    assert seen["url"] == "https://storage.example/files/resumes/jane.pdf"
    assert seen["headers"] == {"Authorization": "Bearer secret-token"}
    assert seen["timeout"] == 5


def test_download_failure_is_upstream_error(tmp_path, monkeypatch):
    monkeypatch.setattr(requests, "get", lambda url, headers=None, timeout=None: FakeResponse(404))
    store = FileStore(storage_dir=str(tmp_path))

    with pytest.raises(UpstreamFetchError) as excinfo:
        store.fetch("https://elsewhere.example/cv.pdf")
    assert excinfo.value.details == {"url": "https://elsewhere.example/cv.pdf"}


def test_relative_reference_without_endpoint_is_rejected(tmp_path):
    with pytest.raises(UpstreamFetchError):
        FileStore(storage_dir=str(tmp_path)).fetch("resumes/jane.pdf")
