import asyncio
from collections.abc import Callable
from pathlib import Path

import structlog
from pydantic import ValidationError

from up2b.core.exceptions import ConfigError, CustomExistsError
from up2b.schemas.config import AppConfig, AuthConfig, BackendCode, BackendIdentity

logger = structlog.get_logger()


def check_auth_config(identity: BackendIdentity, auth_config: AuthConfig) -> None:
    """Reject credentials of a different kind than the backend they are stored under."""
    if auth_config.type != identity.kind.value:
        raise ConfigError(f"{identity.key} takes {identity.kind.value} credentials, got {auth_config.type}")


def check_config(config: AppConfig) -> None:
    BackendIdentity.parse(config.using)
    for key, auth_config in config.auth_config.items():
        check_auth_config(BackendIdentity.parse(key), auth_config)


class ConfigStore:
    """Persistent application configuration.

    Readers get the current immutable snapshot without waiting. Writers serialize on a lock,
    build a modified copy, write it to disk and then swap it in, so the last writer wins.
    """

    def __init__(self, path: Path | str | None = None, config: AppConfig | None = None) -> None:
        self.path = Path(path).expanduser() if path is not None else None
        self._config = config if config is not None else self._load()
        self._lock = asyncio.Lock()

    def _load(self) -> AppConfig:
        if self.path is None or not self.path.exists():
            return AppConfig()
        try:
            return AppConfig.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.error("config_load_failed", path=str(self.path), error=str(e))
            raise ConfigError(f"cannot read configuration {self.path}: {e}") from e

    def _write(self, config: AppConfig) -> None:
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                f.write(config.model_dump_json(indent=2))
        except OSError as e:
            logger.error("config_write_failed", path=str(self.path), error=str(e))
            raise ConfigError(f"cannot write configuration {self.path}: {e}") from e

    def snapshot(self) -> AppConfig:
        return self._config

    def get_auth_config(self, identity: BackendIdentity) -> AuthConfig | None:
        return self._config.get_auth_config(identity)

    async def _update(self, change: Callable[[AppConfig], AppConfig]) -> AppConfig:
        async with self._lock:
            config = change(self._config.model_copy(deep=True))
            self._write(config)
            self._config = config
            return config

    async def set_auth_config(self, identity: BackendIdentity, auth_config: AuthConfig) -> AppConfig:
        check_auth_config(identity, auth_config)

        def change(config: AppConfig) -> AppConfig:
            config.auth_config[identity.key] = auth_config
            return config

        config = await self._update(change)
        logger.info("auth_config_saved", backend=identity.key)
        return config

    async def add_custom(self, identity: BackendIdentity, auth_config: AuthConfig) -> AppConfig:
        if identity.code is not BackendCode.CUSTOM:
            raise ConfigError(f"{identity.key} is not a custom backend")
        check_auth_config(identity, auth_config)

        def change(config: AppConfig) -> AppConfig:
            if identity.key in config.auth_config:
                raise CustomExistsError(identity.display_name)
            config.auth_config[identity.key] = auth_config
            return config

        config = await self._update(change)
        logger.info("custom_backend_added", backend=identity.key)
        return config

    async def set_using(self, identity: BackendIdentity) -> AppConfig:
        def change(config: AppConfig) -> AppConfig:
            config.using = identity.key
            return config

        config = await self._update(change)
        logger.info("backend_selected", backend=identity.key)
        return config

    async def replace(self, new_config: AppConfig) -> AppConfig:
        check_config(new_config)
        config = await self._update(lambda _: new_config)
        logger.info("config_replaced", using=config.using)
        return config
