from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from up2b.core.exceptions import ConfigError
from up2b.schemas.descriptors import AllowedImageFormat, ApiDescriptor

CUSTOM_PREFIX = "CUSTOM-"


class BackendCode(str, Enum):
    SMMS = "SMMS"
    IMGSE = "IMGSE"
    IMGTG = "IMGTG"
    GITHUB = "GITHUB"
    CUSTOM = "CUSTOM"


class ManagerKind(str, Enum):
    API = "API"
    GIT = "GIT"
    CHEVERETO = "CHEVERETO"


_BUILTIN_NAMES = {
    BackendCode.SMMS: ("sm.ms", "https://sm.ms", ManagerKind.API),
    BackendCode.IMGSE: ("imgse.com", "https://imgse.com", ManagerKind.CHEVERETO),
    BackendCode.IMGTG: ("img.tg", "https://img.tg", ManagerKind.CHEVERETO),
    BackendCode.GITHUB: ("github.com", "https://github.com", ManagerKind.GIT),
}


@dataclass(frozen=True)
class BackendIdentity:
    """Stable key of a hosting backend; custom backends are keyed by their upper-cased name."""

    code: BackendCode
    name: str | None = None

    @classmethod
    def custom(cls, name: str) -> "BackendIdentity":
        if not name:
            raise ConfigError("custom backend name must not be empty")
        return cls(BackendCode.CUSTOM, name.upper())

    @classmethod
    def parse(cls, key: str) -> "BackendIdentity":
        if key.upper().startswith(CUSTOM_PREFIX):
            return cls.custom(key[len(CUSTOM_PREFIX) :])
        try:
            code = BackendCode(key.upper())
        except ValueError:
            raise ConfigError(f"unknown backend: {key}") from None
        if code is BackendCode.CUSTOM:
            raise ConfigError("custom backends need a name")
        return cls(code)

    @property
    def key(self) -> str:
        if self.code is BackendCode.CUSTOM:
            return f"{CUSTOM_PREFIX}{self.name}"
        return self.code.value

    @property
    def display_name(self) -> str:
        if self.code is BackendCode.CUSTOM:
            return self.name or ""
        return _BUILTIN_NAMES[self.code][0]

    @property
    def index(self) -> str | None:
        if self.code is BackendCode.CUSTOM:
            return None
        return _BUILTIN_NAMES[self.code][1]

    @property
    def kind(self) -> ManagerKind:
        if self.code is BackendCode.CUSTOM:
            return ManagerKind.API
        return _BUILTIN_NAMES[self.code][2]

    def __str__(self) -> str:
        return self.key


BUILTIN_BACKENDS = [BackendIdentity(code) for code in _BUILTIN_NAMES]


class ManagerItem(BaseModel):
    key: str
    name: str
    index: str | None = None
    type: ManagerKind

    @classmethod
    def from_identity(cls, identity: BackendIdentity) -> "ManagerItem":
        return cls(key=identity.key, name=identity.display_name, index=identity.index, type=identity.kind)


class CheveretoSession(BaseModel):
    model_config = ConfigDict(frozen=True)

    auth_token: str | None = None
    cookie: str | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.auth_token and self.cookie)

    def as_extra(self) -> dict[str, str]:
        return {"token": self.auth_token or "", "cookie": self.cookie or ""}


class ApiAuthConfig(BaseModel):
    type: Literal["API"] = "API"
    token: str = ""
    api: ApiDescriptor | None = None


class GitAuthConfig(BaseModel):
    type: Literal["GIT"] = "GIT"
    token: str
    username: str
    repository: str
    path: str | None = None


class CheveretoAuthConfig(BaseModel):
    type: Literal["CHEVERETO"] = "CHEVERETO"
    username: str
    password: str
    timeout: int | None = None
    session: CheveretoSession | None = None


AuthConfig = Annotated[ApiAuthConfig | GitAuthConfig | CheveretoAuthConfig, Field(discriminator="type")]


class AppConfig(BaseModel):
    using: str = BackendCode.SMMS.value
    automatic_compression: bool = False
    use_proxy: bool = False
    proxy: str | None = None
    auth_config: dict[str, AuthConfig] = Field(default_factory=dict)

    @property
    def using_identity(self) -> BackendIdentity:
        return BackendIdentity.parse(self.using)

    @property
    def active_proxy(self) -> str | None:
        return self.proxy if self.use_proxy else None

    def get_auth_config(self, identity: BackendIdentity) -> ApiAuthConfig | GitAuthConfig | CheveretoAuthConfig | None:
        return self.auth_config.get(identity.key)

    def custom_identities(self) -> list[BackendIdentity]:
        identities = [BackendIdentity.parse(key) for key in self.auth_config]
        return [identity for identity in identities if identity.code is BackendCode.CUSTOM]


class UsingRequest(BaseModel):
    key: str


class CustomBackendRequest(BaseModel):
    name: str
    auth_config: ApiAuthConfig


class CurrentManagerResponse(BaseModel):
    key: str
    name: str
    allowed_formats: list[AllowedImageFormat]
    support_stream: bool


class AuthConfigRequest(BaseModel):
    auth_config: AuthConfig
