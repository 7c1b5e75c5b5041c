import structlog
from fastapi import APIRouter

from up2b.api.dependencies import ManagerDep, StoreDep, TransportDep
from up2b.schemas.config import AuthConfigRequest, BackendIdentity, CurrentManagerResponse, ManagerItem
from up2b.schemas.descriptors import ApiDescriptor
from up2b.schemas.images import VerifyResponse
from up2b.services.registry import SMMS_API, list_managers, use_manager

logger = structlog.get_logger()

router = APIRouter(prefix="/managers")


@router.get("", response_model=list[ManagerItem])
async def get_managers(store: StoreDep) -> list[ManagerItem]:
    return list_managers(store.snapshot())


@router.get("/current", response_model=CurrentManagerResponse)
async def get_current_manager(store: StoreDep, manager: ManagerDep) -> CurrentManagerResponse:
    return CurrentManagerResponse(
        key=store.snapshot().using,
        name=manager.name,
        allowed_formats=manager.allowed_formats(),
        support_stream=manager.support_stream(),
    )


@router.get("/smms/api", response_model=ApiDescriptor)
async def get_smms_api() -> ApiDescriptor:
    return SMMS_API


@router.post("/{key}/verify", response_model=VerifyResponse)
async def verify(key: str, body: AuthConfigRequest, store: StoreDep, transport: TransportDep) -> VerifyResponse:
    identity = BackendIdentity.parse(key)
    manager = use_manager(identity, body.auth_config, transport, store)
    extra = await manager.verify()
    logger.info("credentials_verified", backend=identity.key)
    return VerifyResponse(extra=extra)
