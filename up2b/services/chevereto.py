from __future__ import annotations

import math
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

import httpx
import structlog

from up2b.config import settings
from up2b.core.exceptions import (
    AppError,
    AuthError,
    CheveretoError,
    ExtractionError,
    NotFoundError,
    SessionExpiredError,
    UnexpectedStatusError,
)
from up2b.schemas.config import BackendIdentity, CheveretoAuthConfig, CheveretoSession
from up2b.schemas.descriptors import AllowedImageFormat, CompressedFormat
from up2b.schemas.images import ImageItem
from up2b.services import chevereto_scraper as scraper
from up2b.services.base_manager import BaseManager
from up2b.services.compression import Compressor, compress
from up2b.services.config_store import ConfigStore
from up2b.services.response_path import resolve, resolve_optional_str, resolve_str
from up2b.services.transport import ProgressSink, Transport

logger = structlog.get_logger()

BAD_CREDENTIALS_MESSAGE = "错误的用户名或密码"
SESSION_EXPIRED_MESSAGE = "请求被拒绝 (auth_token)"
NOT_FOUND_MESSAGE = "Invalid content owner request"


@dataclass(frozen=True)
class CheveretoSite:
    base_url: str
    max_size_mb: int
    streaming: bool
    allowed_formats: tuple[AllowedImageFormat, ...]
    compressed_format: CompressedFormat


IMGSE_SITE = CheveretoSite(
    base_url="https://imgse.com",
    max_size_mb=10,
    streaming=False,
    allowed_formats=(AllowedImageFormat.JPEG, AllowedImageFormat.PNG, AllowedImageFormat.GIF),
    compressed_format=CompressedFormat.JPEG,
)

IMGTG_SITE = CheveretoSite(
    base_url="https://img.tg",
    max_size_mb=5,
    streaming=True,
    allowed_formats=(
        AllowedImageFormat.JPEG,
        AllowedImageFormat.PNG,
        AllowedImageFormat.BMP,
        AllowedImageFormat.GIF,
        AllowedImageFormat.WEBP,
    ),
    compressed_format=CompressedFormat.WEBP,
)


def error_from_response(response: httpx.Response) -> AppError:
    """Map a Chevereto ``{status_code, status_txt, error: {message, code}}`` body to an error."""
    try:
        body = response.json()
    except ValueError:
        return UnexpectedStatusError(response.status_code)

    message = resolve(body, "error.message")
    if not isinstance(message, str):
        return UnexpectedStatusError(response.status_code)
    if message == SESSION_EXPIRED_MESSAGE:
        return SessionExpiredError()
    if message == NOT_FOUND_MESSAGE:
        return NotFoundError()
    return CheveretoError(message)


class CheveretoManager(BaseManager):
    """Chevereto sites driven through their web endpoints with a scraped session.

    The session (auth token plus cookie) is created on first use, refreshed when the site
    rejects the token, and written back to the configuration store each time it changes.
    """

    def __init__(
        self,
        identity: BackendIdentity,
        site: CheveretoSite,
        auth_config: CheveretoAuthConfig,
        transport: Transport,
        store: ConfigStore | None = None,
        *,
        automatic_compression: bool = False,
        compressor: Compressor = compress,
        max_retries: int | None = None,
        page_size: int | None = None,
    ) -> None:
        super().__init__(
            identity.display_name,
            site.base_url,
            site.max_size_mb,
            list(site.allowed_formats),
            transport,
            timeout=auth_config.timeout,
            streaming=site.streaming,
            compressed_format=site.compressed_format,
            automatic_compression=automatic_compression,
            compressor=compressor,
        )
        self.identity = identity
        self.auth_config = auth_config
        self.store = store
        self.session = auth_config.session or CheveretoSession()
        self.max_retries = settings.chevereto_max_retries if max_retries is None else max_retries
        self.page_size = page_size or settings.chevereto_page_size

    def headers(self, session: CheveretoSession | None = None, accept: str = "application/json") -> dict[str, str]:
        headers = {"Accept": accept, "User-Agent": settings.user_agent}
        cookie = (session or self.session).cookie
        if cookie:
            headers["Cookie"] = cookie
        return headers

    async def get_auth_data(self, cookie: str | None = None) -> tuple[str, httpx.Response]:
        """Fetch the login page and scrape the auth token embedded in it."""
        headers = {"Accept": "text/html", "User-Agent": settings.user_agent}
        if cookie:
            headers["Cookie"] = cookie
        response = await self.transport.get(self.url("login"), headers=headers, timeout=self.timeout)
        if response.status_code != 200:
            logger.error("auth_data_failed", backend=self.name, status=response.status_code)
            raise UnexpectedStatusError(response.status_code)

        token = scraper.extract_token(response.text)
        if token is None:
            raise ExtractionError("no auth_token in login page")
        return token, response

    async def login(self) -> CheveretoSession:
        token, page = await self.get_auth_data()
        cookie = scraper.first_cookie(page)
        if cookie is None:
            raise ExtractionError("login page did not set a cookie")

        form = {
            "login-subject": self.auth_config.username,
            "password": self.auth_config.password,
            "auth_token": token,
        }
        headers = self.headers(CheveretoSession(cookie=cookie), accept="text/html")
        response = await self.transport.send_form("POST", self.url("login"), headers, form, timeout=self.timeout)

        if not 300 <= response.status_code < 400:
            message = scraper.extract_login_error(response.text)
            logger.error("login_failed", backend=self.name, status=response.status_code, error=message)
            if message == BAD_CREDENTIALS_MESSAGE:
                raise AuthError()
            if message:
                raise CheveretoError(message)
            raise UnexpectedStatusError(response.status_code)

        keeplogin = scraper.first_cookie(response)
        if keeplogin is None:
            raise ExtractionError("login response did not set a cookie")

        logger.info("logged_in", backend=self.name, username=self.auth_config.username)
        return CheveretoSession(auth_token=token, cookie=f"{cookie}; {keeplogin}")

    async def _persist(self, session: CheveretoSession) -> None:
        self.session = session
        self.auth_config = self.auth_config.model_copy(update={"session": session})
        if self.store is not None:
            await self.store.set_auth_config(self.identity, self.auth_config)

    async def ensure_session(self) -> CheveretoSession:
        if self.session.is_complete:
            return self.session
        logger.warning("session_missing", backend=self.name)
        session = await self.login()
        await self._persist(session)
        return session

    async def update_auth_token(self) -> CheveretoSession:
        """Re-scrape the auth token with the current cookie; the cookie itself is kept."""
        token, _ = await self.get_auth_data(cookie=self.session.cookie)
        session = CheveretoSession(auth_token=token, cookie=self.session.cookie)
        await self._persist(session)
        logger.info("auth_token_updated", backend=self.name)
        return session

    async def _send_with_session(
        self, send: Callable[[CheveretoSession], Awaitable[httpx.Response]]
    ) -> httpx.Response:
        session = await self.ensure_session()
        refreshes = 0
        while True:
            response = await send(session)
            if response.status_code == 200:
                return response

            error = error_from_response(response)
            if not isinstance(error, SessionExpiredError) or refreshes >= self.max_retries:
                logger.error("chevereto_request_failed", backend=self.name, code=error.code, error=error.detail)
                raise error

            refreshes += 1
            logger.info("session_refresh", backend=self.name, attempt=refreshes, max_retries=self.max_retries)
            session = await self.update_auth_token()

    async def upload(self, image_path: Path, on_progress: ProgressSink | None = None) -> ImageItem:
        file = self.prepare_upload(image_path)

        async def send(session: CheveretoSession) -> httpx.Response:
            fields = {
                "type": "file",
                "action": "upload",
                "timestamp": str(int(time.time() * 1000)),
                "auth_token": session.auth_token,
                "nsfw": "0",
            }
            return await self.transport.send_multipart(
                "POST",
                self.url("json"),
                self.headers(session),
                file,
                "source",
                fields,
                on_progress=on_progress if self.streaming else None,
                timeout=self.timeout,
            )

        response = await self._send_with_session(send)
        try:
            body = response.json()
        except ValueError as e:
            raise ExtractionError("upload response is not JSON") from e

        return ImageItem(
            url=resolve_str(body, "image.url"),
            deleted_id=resolve_str(body, "image.name"),
            thumb=resolve_optional_str(body, "image.thumb.url"),
        )

    async def delete(self, delete_id: str) -> None:
        async def send(session: CheveretoSession) -> httpx.Response:
            form = {
                "auth_token": session.auth_token or "",
                "action": "delete",
                "from": "list",
                "delete": "images",
                "multiple": "true",
                "deleting[ids][]": delete_id,
            }
            return await self.transport.send_form(
                "POST", self.url("json"), self.headers(session), form, timeout=self.timeout
            )

        await self._send_with_session(send)

    async def _album_page(self, page: int, seek: str | None) -> str:
        # seek is copied verbatim from the page, already url-encoded
        url = f"{self.url(self.auth_config.username)}/?page={page}"
        if seek:
            url = f"{url}&seek={seek}"
        response = await self.transport.get(url, headers=self.headers(accept="text/html"), timeout=self.timeout)
        if response.status_code != 200:
            logger.error("album_page_failed", backend=self.name, page=page, status=response.status_code)
            raise UnexpectedStatusError(response.status_code)
        return response.text

    async def list(self) -> list[ImageItem]:
        html = await self._album_page(1, None)
        images = scraper.extract_items(html)

        count = scraper.extract_image_count(html)
        pages = math.ceil(count / self.page_size) if count else 1
        logger.debug("album_size", backend=self.name, count=count, pages=pages)

        for page in range(2, pages + 1):
            seek = scraper.extract_continuation(html)
            if seek is None:
                raise ExtractionError(f"no continuation cursor before page {page}")
            html = await self._album_page(page, seek)
            images.extend(scraper.extract_items(html))
        return images

    async def verify(self) -> dict[str, str] | None:
        session = await self.login()
        return session.as_extra()
