from up2b.core.exceptions import ConfigError
from up2b.schemas.config import (
    BUILTIN_BACKENDS,
    ApiAuthConfig,
    AppConfig,
    AuthConfig,
    BackendCode,
    BackendIdentity,
    CheveretoAuthConfig,
    GitAuthConfig,
    ManagerItem,
)
from up2b.schemas.descriptors import (
    AllowedImageFormat,
    ApiDescriptor,
    CompressedFormat,
    DeleteDescriptor,
    HeaderAuth,
    JsonResult,
    ListDescriptor,
    MultipartContent,
    UploadDescriptor,
    UploadErrorFields,
    UploadSuccessFields,
    UploadSuccessStatus,
)
from up2b.services.api_manager import BaseApiManager
from up2b.services.chevereto import IMGSE_SITE, IMGTG_SITE, CheveretoManager
from up2b.services.compression import Compressor, compress
from up2b.services.config_store import ConfigStore
from up2b.services.git_manager import GitManager
from up2b.services.transport import Transport

SMMS_API = ApiDescriptor(
    base_url="https://smms.app/api/v2",
    auth_method=HeaderAuth(key="Authorization"),
    upload=UploadDescriptor(
        path="upload",
        max_size_mb=5,
        allowed_formats=[
            AllowedImageFormat.JPEG,
            AllowedImageFormat.PNG,
            AllowedImageFormat.GIF,
            AllowedImageFormat.BMP,
            AllowedImageFormat.WEBP,
        ],
        compressed_format=CompressedFormat.WEBP,
        content_type=MultipartContent(part_name="smfile", streaming=True),
        success=UploadSuccessStatus(status_field="success", expected_value=True),
        error=UploadErrorFields(message_field="message", repeat_match_pattern=r"exists at: (.+?)$"),
        success_fields=UploadSuccessFields(url_path="data.url", delete_id_path="data.hash"),
    ),
    list=ListDescriptor(path="upload_history", items_path="data", url_path="url", delete_id_path="hash"),
    delete=DeleteDescriptor(
        path="delete/",
        result=JsonResult(success_field="success", expected_value=True, message_field="message"),
    ),
)

Manager = BaseApiManager | GitManager | CheveretoManager

_CHEVERETO_SITES = {
    BackendCode.IMGSE: IMGSE_SITE,
    BackendCode.IMGTG: IMGTG_SITE,
}


def use_manager(
    identity: BackendIdentity,
    auth_config: AuthConfig,
    transport: Transport,
    store: ConfigStore | None = None,
    *,
    automatic_compression: bool = False,
    compressor: Compressor = compress,
) -> Manager:
    """Build the manager for ``identity`` from its stored credentials."""
    code = identity.code
    if code in (BackendCode.SMMS, BackendCode.CUSTOM):
        if not isinstance(auth_config, ApiAuthConfig):
            raise ConfigError(f"{identity.key} needs an API auth config")
        if code is BackendCode.SMMS:
            api = SMMS_API
        elif auth_config.api is None:
            raise ConfigError(f"{identity.key} has no api descriptor")
        else:
            api = auth_config.api
        return BaseApiManager(
            identity.display_name,
            auth_config.token,
            api,
            transport,
            automatic_compression=automatic_compression,
            compressor=compressor,
        )

    if code is BackendCode.GITHUB:
        if not isinstance(auth_config, GitAuthConfig):
            raise ConfigError(f"{identity.key} needs a GIT auth config")
        return GitManager(
            auth_config.token,
            auth_config.username,
            auth_config.repository,
            transport,
            path=auth_config.path,
            automatic_compression=automatic_compression,
            compressor=compressor,
        )

    if not isinstance(auth_config, CheveretoAuthConfig):
        raise ConfigError(f"{identity.key} needs a CHEVERETO auth config")
    return CheveretoManager(
        identity,
        _CHEVERETO_SITES[code],
        auth_config,
        transport,
        store,
        automatic_compression=automatic_compression,
        compressor=compressor,
    )


def list_managers(config: AppConfig) -> list[ManagerItem]:
    identities = BUILTIN_BACKENDS + config.custom_identities()
    return [ManagerItem.from_identity(identity) for identity in identities]


def current_manager(store: ConfigStore, transport: Transport) -> Manager:
    config = store.snapshot()
    identity = config.using_identity
    auth_config = config.get_auth_config(identity)
    if auth_config is None:
        raise ConfigError(f"{identity.key} is not configured")
    return use_manager(
        identity,
        auth_config,
        transport,
        store,
        automatic_compression=config.automatic_compression,
    )
