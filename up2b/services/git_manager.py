from __future__ import annotations

import base64
import time
from pathlib import Path
from typing import Any

import httpx
import structlog

from up2b.config import settings
from up2b.core.exceptions import AppError, AuthError, DeleteFailedError, ExtractionError, NotFoundError, UploadError
from up2b.schemas.descriptors import AllowedImageFormat, CompressedFormat
from up2b.schemas.images import ImageItem
from up2b.services.base_manager import BaseManager, parse_json
from up2b.services.compression import Compressor, compress
from up2b.services.response_path import resolve, resolve_str
from up2b.services.transport import ProgressSink, Transport

logger = structlog.get_logger()

GITHUB_API = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
DELETE_ID_SEPARATOR = "---"
DELETE_MESSAGE = "up2b: delete the picture that is no longer used"

GIT_ALLOWED_FORMATS = [
    AllowedImageFormat.JPEG,
    AllowedImageFormat.PNG,
    AllowedImageFormat.GIF,
    AllowedImageFormat.BMP,
    AllowedImageFormat.WEBP,
    AllowedImageFormat.AVIF,
]


def _error_message(response: httpx.Response) -> str:
    try:
        message = resolve(response.json(), "message")
    except ValueError:
        message = None
    return message if isinstance(message, str) else f"status code {response.status_code}"


def _image_from_content(content: Any) -> ImageItem:
    download_url = resolve_str(content, "download_url")
    sha = resolve_str(content, "sha")
    api_url = resolve_str(content, "url")
    return ImageItem(url=download_url, deleted_id=f"{api_url}{DELETE_ID_SEPARATOR}{sha}")


class GitManager(BaseManager):
    """Stores images as files of a GitHub repository through the contents API."""

    def __init__(
        self,
        token: str,
        username: str,
        repository: str,
        transport: Transport,
        *,
        path: str | None = None,
        api_url: str = GITHUB_API,
        max_size_mb: int = 20,
        timeout: float | None = 180,
        automatic_compression: bool = False,
        compressor: Compressor = compress,
    ) -> None:
        self.repo_url = f"{api_url}/repos/{username}/{repository}"
        super().__init__(
            "github",
            f"{self.repo_url}/contents/{path or settings.git_default_path}",
            max_size_mb,
            GIT_ALLOWED_FORMATS,
            transport,
            timeout=timeout,
            streaming=True,
            compressed_format=CompressedFormat.WEBP,
            automatic_compression=automatic_compression,
            compressor=compressor,
        )
        self.token = token

    def headers(self) -> dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "User-Agent": settings.user_agent,
            "Authorization": f"Bearer {self.token}",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    def _raise_for_status(self, response: httpx.Response, error: type[AppError]) -> None:
        message = _error_message(response)
        logger.error("git_request_failed", status=response.status_code, error=message)
        if response.status_code == 401:
            raise AuthError(message)
        if response.status_code == 404:
            raise NotFoundError(message)
        raise error(message)

    async def list(self) -> list[ImageItem]:
        response = await self.transport.get(self.base_url, headers=self.headers(), timeout=self.timeout)
        if response.status_code == 404:
            # the directory only exists after the first upload
            return []
        if response.status_code != 200:
            self._raise_for_status(response, ExtractionError)

        entries = parse_json(response)
        if not isinstance(entries, list):
            raise ExtractionError("directory listing is not a list")
        return [_image_from_content(entry) for entry in entries if resolve(entry, "type") == "file"]

    async def upload(self, image_path: Path, on_progress: ProgressSink | None = None) -> ImageItem:
        file = self.prepare_upload(image_path)
        stem, suffix = Path(file.filename).stem, Path(file.filename).suffix
        filename = f"{stem}_{int(time.time() * 1000)}{suffix}"
        body = {
            "message": f"up2b: {image_path.name}",
            "content": base64.b64encode(file.content).decode(),
        }
        response = await self.transport.send_json(
            "PUT", self.url(filename), self.headers(), body, timeout=self.timeout, on_progress=on_progress
        )
        if response.status_code != 201:
            self._raise_for_status(response, UploadError)

        return _image_from_content(resolve(parse_json(response), "content"))

    async def delete(self, delete_id: str) -> None:
        url, separator, sha = delete_id.partition(DELETE_ID_SEPARATOR)
        if not separator or not sha:
            raise DeleteFailedError(f"malformed delete id: {delete_id}")

        body = {"sha": sha, "message": DELETE_MESSAGE}
        response = await self.transport.request(
            "DELETE", url, headers=self.headers(), timeout=self.timeout, json=body
        )
        if response.status_code != 200:
            self._raise_for_status(response, DeleteFailedError)

    async def verify(self) -> dict[str, str] | None:
        response = await self.transport.get(self.repo_url, headers=self.headers(), timeout=self.timeout)
        if response.status_code != 200:
            self._raise_for_status(response, AuthError)
        return None
