from __future__ import annotations

import base64
import re
from pathlib import Path
from typing import Any

import httpx
import structlog

from up2b.core.exceptions import (
    AppError,
    ConfigError,
    DeleteFailedError,
    DuplicateError,
    ExtractionError,
    NotFoundError,
    UploadError,
)
from up2b.schemas.descriptors import (
    ApiDescriptor,
    BodyAuth,
    DeleteDelete,
    DeletePost,
    DeleteResult,
    HeaderAuth,
    JsonContent,
    ListDescriptor,
    ListPost,
    QueryPlacement,
    StatusResult,
    UploadDescriptor,
    UploadErrorFields,
)
from up2b.schemas.images import ImageItem
from up2b.services.base_manager import BaseManager, parse_json
from up2b.services.compression import Compressor, compress
from up2b.services.response_path import json_equals, resolve, resolve_list, resolve_optional_str, resolve_str
from up2b.services.transport import ProgressSink, Transport

logger = structlog.get_logger()


def parse_image_list(body: Any, descriptor: ListDescriptor) -> list[ImageItem]:
    items = resolve_list(body, descriptor.items_path)
    images = []
    for item in items:
        images.append(
            ImageItem(
                url=resolve_str(item, descriptor.url_path),
                deleted_id=resolve_str(item, descriptor.delete_id_path),
                thumb=resolve_optional_str(item, descriptor.thumb_path),
            )
        )
    return images


def parse_upload_error(body: Any, fields: UploadErrorFields) -> AppError:
    message = resolve(body, fields.message_field)
    if not isinstance(message, str):
        return ExtractionError(f"no error message at '{fields.message_field}'")

    if fields.repeat_match_pattern:
        try:
            pattern = re.compile(fields.repeat_match_pattern)
        except re.error as e:
            return ConfigError(f"invalid repeat pattern '{fields.repeat_match_pattern}': {e}")
        match = pattern.search(message)
        if match and pattern.groups and match.group(1):
            return DuplicateError(match.group(1))

    return UploadError(message)


def parse_upload_response(body: Any, descriptor: UploadDescriptor) -> ImageItem:
    status = resolve(body, descriptor.success.status_field)
    if not json_equals(status, descriptor.success.expected_value):
        logger.debug("upload_status_mismatch", status=status, expected=descriptor.success.expected_value)
        raise parse_upload_error(body, descriptor.error)

    fields = descriptor.success_fields
    return ImageItem(
        url=resolve_str(body, fields.url_path),
        deleted_id=resolve_str(body, fields.delete_id_path),
        thumb=resolve_optional_str(body, fields.thumb_path),
    )


def check_delete_response(response: httpx.Response, result: DeleteResult) -> None:
    if isinstance(result, StatusResult):
        if response.status_code == 404:
            raise NotFoundError()
        if response.status_code != 200:
            raise DeleteFailedError()
        return

    body = parse_json(response)
    value = resolve(body, result.success_field)
    if value is None or not json_equals(value, result.expected_value):
        message = resolve(body, result.message_field) if result.message_field else None
        raise DeleteFailedError(message if isinstance(message, str) else "unknown")


class BaseApiManager(BaseManager):
    """Executes list/upload/delete against any host described by an ``ApiDescriptor``."""

    def __init__(
        self,
        name: str,
        token: str,
        api: ApiDescriptor,
        transport: Transport,
        *,
        automatic_compression: bool = False,
        compressor: Compressor = compress,
    ) -> None:
        content_type = api.upload.content_type
        super().__init__(
            name,
            api.base_url,
            api.upload.max_size_mb,
            api.upload.allowed_formats,
            transport,
            timeout=api.upload.timeout_seconds,
            streaming=isinstance(content_type, JsonContent) or content_type.streaming,
            compressed_format=api.upload.compressed_format,
            automatic_compression=automatic_compression,
            compressor=compressor,
        )
        self.token = token
        self.api = api

    def headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        auth = self.api.auth_method
        if isinstance(auth, HeaderAuth):
            headers[auth.key or "Authorization"] = f"{auth.prefix or ''}{self.token}"
        return headers

    def _with_token(self, body: dict[str, Any]) -> dict[str, Any]:
        body = dict(body)
        auth = self.api.auth_method
        if isinstance(auth, BodyAuth):
            body[auth.key] = self.token
        return body

    async def list(self) -> list[ImageItem]:
        descriptor = self.api.list
        url = self.url(descriptor.path)
        if isinstance(descriptor.method, ListPost):
            body = self._with_token(descriptor.method.body)
            response = await self.transport.send_json("POST", url, self.headers(), body, timeout=self.timeout)
        else:
            response = await self.transport.get(url, headers=self.headers(), timeout=self.timeout)
        return parse_image_list(parse_json(response), descriptor)

    async def upload(
        self,
        image_path: Path,
        extra_form_fields: dict[str, Any] | None = None,
        on_progress: ProgressSink | None = None,
    ) -> ImageItem:
        file = self.prepare_upload(image_path)
        descriptor = self.api.upload
        url = self.url(descriptor.path)
        content_type = descriptor.content_type
        logger.debug("uploading", backend=self.name, url=url, size=len(file.content), timeout=self.timeout)

        if isinstance(content_type, JsonContent):
            body = dict(descriptor.extra_body_fields or {})
            body.update(extra_form_fields or {})
            body = self._with_token(body)
            body[content_type.key] = base64.b64encode(file.content).decode()
            response = await self.transport.send_json(
                "POST", url, self.headers(), body, timeout=self.timeout, on_progress=on_progress
            )
        else:
            fields = {**(descriptor.extra_body_fields or {}), **(extra_form_fields or {})}
            response = await self.transport.send_multipart(
                "POST",
                url,
                self.headers(),
                file,
                content_type.part_name,
                fields,
                on_progress=on_progress if content_type.streaming else None,
                timeout=self.timeout,
            )

        return parse_upload_response(parse_json(response), descriptor)

    async def delete(self, delete_id: str) -> None:
        descriptor = self.api.delete
        method = descriptor.method
        if isinstance(method, DeletePost):
            body = self._with_token(method.body)
            body[method.id_field] = delete_id
            response = await self.transport.send_json(
                "POST", self.url(descriptor.path), self.headers(), body, timeout=self.timeout
            )
        else:
            http_method = "DELETE" if isinstance(method, DeleteDelete) else "GET"
            params = None
            if isinstance(descriptor.id_placement, QueryPlacement):
                url = self.url(descriptor.path)
                params = {descriptor.id_placement.key: delete_id}
            else:
                url = self.url(descriptor.path + delete_id)
            response = await self.transport.request(
                http_method, url, headers=self.headers(), timeout=self.timeout, params=params
            )
        check_delete_response(response, descriptor.result)

    async def verify(self) -> dict[str, str] | None:
        await self.list()
        return None
