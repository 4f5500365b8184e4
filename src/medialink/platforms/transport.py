"""HTTP upload transport built on requests."""

import asyncio
from dataclasses import dataclass
from typing import Callable, Optional
import requests
from loguru import logger

from medialink.config import UploadSettings
from medialink.document import UploadFile

ProgressCallback = Callable[[int, int], None]


@dataclass
class UploadResponse:
    """Transport reply: the public URL of the stored file."""
    file_url: str


class UploadError(Exception):
    """Raised when the storage endpoint rejects or garbles an upload."""


class HttpTransport:
    """Upload files to an HTTP endpoint that answers with ``{"fileUrl": ...}``."""

    def __init__(self, settings: UploadSettings):
        if not settings.endpoint:
            raise ValueError("Upload endpoint not configured. Run 'ml init' first.")
        self.endpoint = settings.endpoint
        self.token = settings.token
        self.part_size = settings.part_size
        self.timeout = settings.timeout
        logger.debug("HttpTransport initialized: endpoint={}", self.endpoint)

    async def upload(self, file: UploadFile, on_progress: Optional[ProgressCallback] = None) -> UploadResponse:
        """Upload without blocking the event loop."""
        return await asyncio.to_thread(self.upload_sync, file, on_progress)

    def upload_sync(self, file: UploadFile, on_progress: Optional[ProgressCallback] = None) -> UploadResponse:
        """Upload file bytes, in parts when larger than the part size."""
        size_mb = file.size / (1024 * 1024)
        if file.size > self.part_size:
            logger.info("Uploading {} in parts ({:.2f} MB)", file.name, size_mb)
            payload = self._upload_multipart(file, on_progress)
        else:
            logger.info("Uploading {} ({:.2f} MB)", file.name, size_mb)
            payload = self._upload_simple(file, on_progress)

        file_url = payload.get('fileUrl')
        if not file_url:
            logger.error("Missing fileUrl in response: {}", payload)
            raise UploadError(f"Upload failed - incomplete response: {payload}")

        logger.debug("✓ Uploaded {}: {}", file.name, file_url)
        return UploadResponse(file_url)

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def _post(self, url: str, **kwargs) -> dict:
        try:
            response = requests.post(url, headers=self._headers(), timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.HTTPError as e:
            body = e.response.text if e.response is not None else ''
            logger.error("HTTP error uploading file: {} - {}", e, body)
            raise UploadError(str(e)) from e
        except ValueError as e:
            raise UploadError(f"Upload endpoint returned invalid JSON: {e}") from e

    def _upload_simple(self, file: UploadFile, on_progress: Optional[ProgressCallback]) -> dict:
        if on_progress:
            on_progress(0, file.size)
        files = {'file': (file.name, file.data, file.content_type)}
        payload = self._post(self.endpoint, files=files)
        if on_progress:
            on_progress(file.size, file.size)
        return payload

    def _upload_multipart(self, file: UploadFile, on_progress: Optional[ProgressCallback]) -> dict:
        """Send the file as numbered parts, then ask the endpoint to assemble it."""
        number_of_parts = (file.size + self.part_size - 1) // self.part_size
        created = self._post(f"{self.endpoint}/multipart", json={
            "filename": file.name,
            "content_type": file.content_type,
            "number_of_parts": number_of_parts
        })
        upload_id = created.get('id')
        if not upload_id:
            raise UploadError(f"No upload id in response: {created}")

        sent = 0
        for part_num in range(1, number_of_parts + 1):
            chunk = file.data[sent:sent + self.part_size]
            logger.debug("Uploading part {}/{} of {}", part_num, number_of_parts, file.name)
            self._post(
                f"{self.endpoint}/multipart/{upload_id}",
                files={'file': (file.name, chunk, file.content_type)},
                data={'part_number': str(part_num)}
            )
            sent += len(chunk)
            if on_progress:
                on_progress(sent, file.size)

        return self._post(f"{self.endpoint}/multipart/{upload_id}/complete")
