import json
from collections.abc import AsyncIterator, Callable, Mapping
from dataclasses import dataclass
from io import BytesIO
from typing import Any

import httpx
import structlog

from up2b.config import settings
from up2b.core.exceptions import TransportError

logger = structlog.get_logger()

ProgressSink = Callable[[int], None]

CHUNK_SIZE = 8 * 1024

_transport: "Transport | None" = None


@dataclass
class UploadFile:
    filename: str
    content: bytes
    mime_type: str


class ProgressReader(BytesIO):
    """In-memory file whose reads report the cumulative number of bytes handed to the client."""

    def __init__(self, data: bytes, on_progress: ProgressSink) -> None:
        super().__init__(data)
        self._on_progress = on_progress
        self._sent = 0

    def read(self, size: int | None = -1) -> bytes:
        chunk = super().read(size)
        if chunk:
            self._sent += len(chunk)
            self._on_progress(self._sent)
        return chunk

    def seek(self, offset: int, whence: int = 0) -> int:
        position = super().seek(offset, whence)
        if position == 0:
            self._sent = 0
        return position


async def _iter_chunks(payload: bytes, on_progress: ProgressSink) -> AsyncIterator[bytes]:
    sent = 0
    for start in range(0, len(payload), CHUNK_SIZE):
        chunk = payload[start : start + CHUNK_SIZE]
        sent += len(chunk)
        yield chunk
        on_progress(sent)


class Transport:
    """Thin async HTTP layer; every network failure leaves as ``TransportError``."""

    def __init__(self, client: httpx.AsyncClient | None = None, proxy: str | None = None) -> None:
        self._client = client or httpx.AsyncClient(proxy=proxy, headers={"User-Agent": settings.user_agent})

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method,
                url,
                headers=headers,
                timeout=timeout if timeout is not None else settings.request_timeout,
                **kwargs,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error("request_failed", method=method, url=url, error=str(e))
            raise TransportError(str(e) or type(e).__name__) from e
        logger.debug("request_sent", method=method, url=url, status=response.status_code)
        return response

    async def get(
        self,
        url: str,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
        params: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        return await self.request("GET", url, headers=headers, timeout=timeout, params=params)

    async def send_json(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Any,
        timeout: float | None = None,
        on_progress: ProgressSink | None = None,
    ) -> httpx.Response:
        if on_progress is None:
            return await self.request(method, url, headers=headers, timeout=timeout, json=body)

        payload = json.dumps(body).encode()
        headers = {**headers, "Content-Type": "application/json", "Content-Length": str(len(payload))}
        return await self.request(
            method, url, headers=headers, timeout=timeout, content=_iter_chunks(payload, on_progress)
        )

    async def send_multipart(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        file: UploadFile,
        field_name: str,
        extra_fields: Mapping[str, Any] | None = None,
        on_progress: ProgressSink | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        content: bytes | ProgressReader = file.content
        if on_progress is not None:
            content = ProgressReader(file.content, on_progress)
        files = {field_name: (file.filename, content, file.mime_type)}
        data = {
            key: value if isinstance(value, str) else json.dumps(value) for key, value in (extra_fields or {}).items()
        }
        return await self.request(method, url, headers=headers, timeout=timeout, data=data, files=files)

    async def send_form(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        data: Mapping[str, str],
        timeout: float | None = None,
    ) -> httpx.Response:
        return await self.request(method, url, headers=headers, timeout=timeout, data=data)

    async def aclose(self) -> None:
        await self._client.aclose()


def get_transport(proxy: str | None = None) -> Transport:
    global _transport
    if _transport is None:
        _transport = Transport(proxy=proxy)
    return _transport


async def close_transport() -> None:
    global _transport
    if _transport:
        await _transport.aclose()
        _transport = None
