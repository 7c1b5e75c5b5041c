from pathlib import Path
from typing import Annotated

from fastapi import APIRouter, Query

from up2b.api.dependencies import ManagerDep
from up2b.core.exceptions import AppError
from up2b.schemas.images import DeleteResponse, ImageItem, ImageUploadRequest, UploadResult

router = APIRouter(prefix="/images")


@router.get("", response_model=list[ImageItem])
async def list_images(manager: ManagerDep) -> list[ImageItem]:
    return await manager.get_all_images()


@router.post("", response_model=UploadResult)
async def upload_image(manager: ManagerDep, body: ImageUploadRequest) -> UploadResult:
    image_path = Path(body.path).expanduser()
    if not image_path.is_file():
        raise AppError(status_code=400, detail=f"Not a file: {body.path}")
    return await manager.upload_image(image_path)


@router.delete("", response_model=DeleteResponse)
async def delete_image(
    manager: ManagerDep, delete_id: Annotated[str, Query(alias="id", min_length=1)]
) -> DeleteResponse:
    return await manager.delete_image(delete_id)
