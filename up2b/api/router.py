from fastapi import APIRouter

from up2b.api.endpoints import config, health, images, managers

router = APIRouter()
router.include_router(health.router, tags=["health"])
router.include_router(managers.router, tags=["managers"])
router.include_router(images.router, tags=["images"])
router.include_router(config.router, tags=["config"])
