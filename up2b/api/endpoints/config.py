from fastapi import APIRouter

from up2b.api.dependencies import StoreDep
from up2b.schemas.config import AppConfig, AuthConfigRequest, BackendIdentity, CustomBackendRequest, UsingRequest

router = APIRouter(prefix="/config")


@router.get("", response_model=AppConfig)
async def read_config(store: StoreDep) -> AppConfig:
    return store.snapshot()


@router.put("", response_model=AppConfig)
async def replace_config(store: StoreDep, config: AppConfig) -> AppConfig:
    return await store.replace(config)


@router.put("/using", response_model=AppConfig)
async def set_using(store: StoreDep, body: UsingRequest) -> AppConfig:
    return await store.set_using(BackendIdentity.parse(body.key))


@router.put("/auth/{key}", response_model=AppConfig)
async def set_auth_config(key: str, store: StoreDep, body: AuthConfigRequest) -> AppConfig:
    return await store.set_auth_config(BackendIdentity.parse(key), body.auth_config)


@router.post("/custom", response_model=AppConfig)
async def add_custom(store: StoreDep, body: CustomBackendRequest) -> AppConfig:
    return await store.add_custom(BackendIdentity.custom(body.name), body.auth_config)
