from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class ImageItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    deleted_id: str
    thumb: str | None = None


class DeleteResponse(BaseModel):
    success: bool
    code: str | None = None
    error: str | None = None


class UploadResponse(BaseModel):
    type: Literal["Response"] = "Response"
    item: ImageItem


class UploadDuplicate(BaseModel):
    type: Literal["Duplicate"] = "Duplicate"
    url: str
    detail: str


class UploadFailure(BaseModel):
    type: Literal["Error"] = "Error"
    code: str
    detail: str


UploadResult = Annotated[UploadResponse | UploadDuplicate | UploadFailure, Field(discriminator="type")]


class ImageUploadRequest(BaseModel):
    path: str


class VerifyResponse(BaseModel):
    extra: dict[str, str] | None = None
