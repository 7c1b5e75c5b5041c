"""Declarative descriptions of an image host's REST contract.

An ``ApiDescriptor`` is everything the generic executor needs to talk to one backend: where the
token goes, how the upload body is encoded and which response paths hold the url, thumbnail and
delete-id. Descriptors are plain data so users can store their own in the configuration file.
"""

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, field_validator

DEFAULT_TIMEOUT_SECONDS = 5


class AllowedImageFormat(str, Enum):
    JPEG = "JPEG"
    PNG = "PNG"
    WEBP = "WEBP"
    AVIF = "AVIF"
    GIF = "GIF"
    BMP = "BMP"


class CompressedFormat(str, Enum):
    JPEG = "JPEG"
    WEBP = "WEBP"


class HeaderAuth(BaseModel):
    """Token sent in a header; ``key`` defaults to ``Authorization``."""

    type: Literal["HEADER"] = "HEADER"
    key: str | None = None
    prefix: str | None = None


class BodyAuth(BaseModel):
    """Token merged into JSON bodies under ``key``."""

    type: Literal["BODY"] = "BODY"
    key: str


AuthMethod = Annotated[HeaderAuth | BodyAuth, Field(discriminator="type")]


class JsonContent(BaseModel):
    type: Literal["JSON"] = "JSON"
    key: str


class MultipartContent(BaseModel):
    type: Literal["MULTIPART"] = "MULTIPART"
    part_name: str
    streaming: bool = True


UploadContentType = Annotated[JsonContent | MultipartContent, Field(discriminator="type")]


class UploadSuccessStatus(BaseModel):
    status_field: str
    expected_value: Any


class UploadErrorFields(BaseModel):
    message_field: str
    # regex whose first group captures the url of an already uploaded copy
    repeat_match_pattern: str | None = None


class UploadSuccessFields(BaseModel):
    url_path: str
    delete_id_path: str
    thumb_path: str | None = None


class UploadDescriptor(BaseModel):
    path: str
    max_size_mb: int
    allowed_formats: list[AllowedImageFormat]
    compressed_format: CompressedFormat = CompressedFormat.WEBP
    content_type: UploadContentType
    extra_body_fields: dict[str, Any] | None = None
    success: UploadSuccessStatus
    error: UploadErrorFields
    success_fields: UploadSuccessFields
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS

    @field_validator("timeout_seconds", mode="before")
    @classmethod
    def _default_timeout(cls, value: int | None) -> int:
        if not value:
            return DEFAULT_TIMEOUT_SECONDS
        return value


class ListGet(BaseModel):
    type: Literal["GET"] = "GET"


class ListPost(BaseModel):
    type: Literal["POST"] = "POST"
    body: dict[str, Any] = Field(default_factory=dict)


ListMethod = Annotated[ListGet | ListPost, Field(discriminator="type")]


class ListDescriptor(BaseModel):
    path: str
    method: ListMethod = Field(default_factory=ListGet)
    items_path: str
    url_path: str
    delete_id_path: str
    thumb_path: str | None = None


class DeleteGet(BaseModel):
    type: Literal["GET"] = "GET"


class DeleteDelete(BaseModel):
    type: Literal["DELETE"] = "DELETE"


class DeletePost(BaseModel):
    type: Literal["POST"] = "POST"
    body: dict[str, Any] = Field(default_factory=dict)
    id_field: str


DeleteMethod = Annotated[DeleteGet | DeleteDelete | DeletePost, Field(discriminator="type")]


class PathPlacement(BaseModel):
    type: Literal["PATH"] = "PATH"


class QueryPlacement(BaseModel):
    type: Literal["QUERY"] = "QUERY"
    key: str


IdPlacement = Annotated[PathPlacement | QueryPlacement, Field(discriminator="type")]


class StatusResult(BaseModel):
    """Deletion succeeded iff the response status is exactly 200."""

    type: Literal["STATUS"] = "STATUS"


class JsonResult(BaseModel):
    type: Literal["JSON"] = "JSON"
    success_field: str
    expected_value: Any
    message_field: str | None = None


DeleteResult = Annotated[StatusResult | JsonResult, Field(discriminator="type")]


class DeleteDescriptor(BaseModel):
    path: str
    method: DeleteMethod = Field(default_factory=DeleteGet)
    id_placement: IdPlacement = Field(default_factory=PathPlacement)
    result: DeleteResult = Field(default_factory=StatusResult)


class ApiDescriptor(BaseModel):
    base_url: str
    auth_method: AuthMethod = Field(default_factory=HeaderAuth)
    upload: UploadDescriptor
    list: ListDescriptor
    delete: DeleteDescriptor
