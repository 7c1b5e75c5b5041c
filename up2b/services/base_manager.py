from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol

import httpx
import structlog

from up2b.core.exceptions import AppError, DuplicateError, ExtractionError, OverSizeError, TransportError, UploadError
from up2b.schemas.descriptors import DEFAULT_TIMEOUT_SECONDS, AllowedImageFormat, CompressedFormat
from up2b.schemas.images import DeleteResponse, ImageItem, UploadDuplicate, UploadFailure, UploadResponse, UploadResult
from up2b.services.compression import Compressor, compress, detect_mime_type
from up2b.services.transport import ProgressSink, Transport, UploadFile

logger = structlog.get_logger()

MIB = 1024 * 1024


class Manage(Protocol):
    name: str

    def allowed_formats(self) -> list[AllowedImageFormat]:
        ...

    def support_stream(self) -> bool:
        ...

    async def verify(self) -> dict[str, str] | None:
        ...

    async def get_all_images(self) -> list[ImageItem]:
        ...

    async def delete_image(self, delete_id: str) -> DeleteResponse:
        ...

    async def upload_image(self, image_path: Path, on_progress: ProgressSink | None = None) -> UploadResult:
        ...


def parse_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise ExtractionError(f"response body is not JSON (status {response.status_code})") from e


class BaseManager:
    """Behaviour shared by every backend family: urls, size limits and result conversion.

    Subclasses implement ``list``, ``upload``, ``delete`` and ``verify``; the ``*_image`` methods
    turn their exceptions into the uniform result types handed to callers.
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        max_size_mb: int,
        allowed_formats: list[AllowedImageFormat],
        transport: Transport,
        *,
        timeout: float | None = None,
        streaming: bool = True,
        compressed_format: CompressedFormat = CompressedFormat.WEBP,
        automatic_compression: bool = False,
        compressor: Compressor = compress,
    ) -> None:
        self.name = name
        self.base_url = base_url
        self.max_size_mb = max_size_mb
        self._allowed_formats = list(allowed_formats)
        self.transport = transport
        self.timeout = timeout or DEFAULT_TIMEOUT_SECONDS
        self.streaming = streaming
        self.compressed_format = compressed_format
        self.automatic_compression = automatic_compression
        self._compressor = compressor

    def url(self, path: str) -> str:
        if not path:
            return self.base_url.rstrip("/")
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    def allowed_formats(self) -> list[AllowedImageFormat]:
        return list(self._allowed_formats)

    def support_stream(self) -> bool:
        return self.streaming

    def _over_size(self, image_path: Path, size: int) -> OverSizeError:
        logger.error("image_over_size", backend=self.name, path=str(image_path), size=size, max_mb=self.max_size_mb)
        return OverSizeError(self.name, str(image_path), self.max_size_mb, size // MIB)

    def prepare_upload(self, image_path: Path) -> UploadFile:
        """Read the image and bring it under the size limit, compressing when allowed."""
        try:
            data = image_path.read_bytes()
        except OSError as e:
            raise TransportError(f"cannot read {image_path}: {e}") from e

        filename = image_path.name
        max_bytes = self.max_size_mb * MIB
        if len(data) > max_bytes:
            if not self.automatic_compression:
                raise self._over_size(image_path, len(data))
            try:
                data, ext = self._compressor(data, max_bytes, self.compressed_format)
            except (OSError, ValueError) as e:
                raise UploadError(f"cannot compress {image_path}: {e}") from e
            if ext:
                filename = f"{image_path.stem}.{ext}"
            if len(data) > max_bytes:
                raise self._over_size(image_path, len(data))

        return UploadFile(filename=filename, content=data, mime_type=detect_mime_type(data, filename))

    async def list(self) -> list[ImageItem]:
        raise NotImplementedError

    async def upload(self, image_path: Path, on_progress: ProgressSink | None = None) -> ImageItem:
        raise NotImplementedError

    async def delete(self, delete_id: str) -> None:
        raise NotImplementedError

    async def verify(self) -> dict[str, str] | None:
        raise NotImplementedError

    async def get_all_images(self) -> list[ImageItem]:
        images = await self.list()
        logger.info("images_listed", backend=self.name, count=len(images))
        return images

    async def upload_image(self, image_path: Path, on_progress: ProgressSink | None = None) -> UploadResult:
        try:
            item = await self.upload(image_path, on_progress=on_progress)
        except DuplicateError as e:
            logger.info("image_duplicate", backend=self.name, path=str(image_path), url=e.url)
            return UploadDuplicate(url=e.url, detail=e.detail)
        except AppError as e:
            logger.error("image_upload_failed", backend=self.name, path=str(image_path), code=e.code, error=e.detail)
            return UploadFailure(code=e.code, detail=e.detail)

        logger.info("image_uploaded", backend=self.name, path=str(image_path), url=item.url)
        return UploadResponse(item=item)

    async def delete_image(self, delete_id: str) -> DeleteResponse:
        try:
            await self.delete(delete_id)
        except AppError as e:
            logger.error("image_delete_failed", backend=self.name, delete_id=delete_id, code=e.code, error=e.detail)
            return DeleteResponse(success=False, code=e.code, error=e.detail)

        logger.info("image_deleted", backend=self.name, delete_id=delete_id)
        return DeleteResponse(success=True)
