import hashlib
import logging
import os
from pathlib import Path
from typing import Optional
from urllib.parse import urljoin, urlparse

import requests

from resume_screener.core.config import Config, settings
from resume_screener.core.exceptions import UpstreamFetchError

logger = logging.getLogger(__name__)

LOCAL_SCHEME = "local://"


class FileStore:
    """
    Stores uploaded files under a local directory and fetches stored references back.

    References are either `local://<owner>/<name>` for files saved here, absolute
    http(s) URLs, or paths relative to the configured storage service endpoint.
    """

    def __init__(
        self,
        storage_dir: str,
        service_endpoint: Optional[str] = None,
        service_credential: Optional[str] = None,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ):
        self.storage_dir = Path(storage_dir)
        self.service_endpoint = service_endpoint
        self.service_credential = service_credential
        self.timeout = timeout
        self.session = session

    @classmethod
    def from_settings(cls, config: Config = settings) -> "FileStore":
        return cls(
            storage_dir=config.uploads.storage_dir,
            service_endpoint=config.services.service_endpoint,
            service_credential=config.services.service_credential,
            timeout=config.uploads.fetch_timeout,
        )

    def save(self, owner: str, file_name: str, content: bytes) -> str:
        """Persist `content` and return the reference to store on the record."""
        ext = os.path.splitext(file_name)[1].lower()
        digest = hashlib.sha256(content).hexdigest()[:16]
        stem = Path(file_name).stem[:40] or "file"
        safe_stem = "".join(c if c.isalnum() or c in "-_" else "_" for c in stem)
        target_dir = self.storage_dir / owner
        target_dir.mkdir(parents=True, exist_ok=True)
        stored_name = f"{safe_stem}-{digest}{ext}"
        (target_dir / stored_name).write_bytes(content)
        logger.info(f"Stored upload {file_name} ({len(content)} bytes) as {stored_name}")
        return f"{LOCAL_SCHEME}{owner}/{stored_name}"

    def fetch(self, file_url: str) -> bytes:
        if not file_url:
            raise UpstreamFetchError("No file reference to download")
        if file_url.startswith(LOCAL_SCHEME):
            return self._read_local(file_url[len(LOCAL_SCHEME):])

        url = file_url
        if not urlparse(file_url).scheme:
            if not self.service_endpoint:
                raise UpstreamFetchError(f"Relative file reference {file_url} but SERVICE_ENDPOINT is not set")
            url = urljoin(self.service_endpoint.rstrip("/") + "/", file_url.lstrip("/"))

        headers = {}
        if self.service_credential and self.service_endpoint and url.startswith(self.service_endpoint):
            headers["Authorization"] = f"Bearer {self.service_credential}"

        try:
            response = (self.session or requests).get(url, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as exc:
            logger.error(f"Failed to download file from storage: {exc}")
            raise UpstreamFetchError("Failed to download file from storage", details={"url": file_url}) from exc
        return response.content

    def _read_local(self, relative: str) -> bytes:
        root = self.storage_dir.resolve()
        path = (root / relative).resolve()
        if root not in path.parents:
            raise UpstreamFetchError("File reference escapes the storage directory", details={"url": relative})
        try:
            return path.read_bytes()
        except OSError as exc:
            raise UpstreamFetchError("Failed to read file from storage", details={"url": relative}) from exc


def get_file_store() -> FileStore:
    return FileStore.from_settings(settings)
