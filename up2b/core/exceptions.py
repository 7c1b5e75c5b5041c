class AppError(Exception):
    """Base error carrying an HTTP-ish status, a machine-readable code and a readable detail."""

    code = "UNKNOWN"

    def __init__(self, status_code: int = 500, detail: str = "") -> None:
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail

    def __str__(self) -> str:
        return self.detail


class ConfigError(AppError):
    code = "CONFIG"

    def __init__(self, detail: str) -> None:
        super().__init__(status_code=400, detail=detail)


class CustomExistsError(AppError):
    code = "CUSTOM_EXISTS"

    def __init__(self, name: str) -> None:
        super().__init__(status_code=409, detail=f"{name} already exists")
        self.name = name


class TransportError(AppError):
    code = "TRANSPORT"

    def __init__(self, detail: str) -> None:
        super().__init__(status_code=502, detail=detail)


class UnexpectedStatusError(AppError):
    code = "STATUS"

    def __init__(self, status: int) -> None:
        super().__init__(status_code=502, detail=f"unexpected status code: {status}")
        self.status = status


class ExtractionError(AppError):
    """A response path did not resolve to the expected JSON type."""

    code = "EXTRACTION"

    def __init__(self, detail: str) -> None:
        super().__init__(status_code=502, detail=detail)


class OverSizeError(AppError):
    code = "OVER_SIZE"

    def __init__(self, backend: str, path: str, max_mb: int, actual_mb: int) -> None:
        super().__init__(
            status_code=413,
            detail=f"{backend} does not accept an image of this size: path={path}, size={actual_mb}M > {max_mb}M",
        )
        self.backend = backend
        self.path = path
        self.max_mb = max_mb
        self.actual_mb = actual_mb


class AuthError(AppError):
    code = "AUTH"

    def __init__(self, detail: str = "wrong username or password") -> None:
        super().__init__(status_code=401, detail=detail)


class SessionExpiredError(AppError):
    code = "SESSION_EXPIRED"

    def __init__(self, detail: str = "auth_token expired") -> None:
        super().__init__(status_code=401, detail=detail)


class DuplicateError(AppError):
    """The backend already stores this exact image; ``url`` points at the existing copy."""

    code = "DUPLICATE"

    def __init__(self, url: str) -> None:
        super().__init__(status_code=409, detail=f"image already exists at {url}")
        self.url = url


class NotFoundError(AppError):
    code = "NOT_FOUND"

    def __init__(self, detail: str = "image not found") -> None:
        super().__init__(status_code=404, detail=detail)


class UploadError(AppError):
    code = "UPLOAD_FAILED"

    def __init__(self, detail: str) -> None:
        super().__init__(status_code=502, detail=detail)


class DeleteFailedError(AppError):
    code = "DELETE_FAILED"

    def __init__(self, detail: str = "unknown") -> None:
        super().__init__(status_code=502, detail=detail)


class CheveretoError(AppError):
    code = "CHEVERETO"

    def __init__(self, detail: str) -> None:
        super().__init__(status_code=502, detail=detail)
