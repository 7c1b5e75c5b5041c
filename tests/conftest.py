from collections.abc import AsyncIterator, Callable
from io import BytesIO
from pathlib import Path

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from PIL import Image

from up2b.api.dependencies import get_http_transport, get_store
from up2b.main import app
from up2b.services.config_store import ConfigStore
from up2b.services.transport import Transport

Handler = Callable[[httpx.Request], httpx.Response]


def _image_bytes(width: int = 64, height: int = 64, fmt: str = "PNG") -> bytes:
    img = Image.new("RGB", (width, height), color="red")
    buffer = BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def image_bytes() -> Callable[..., bytes]:
    return _image_bytes


@pytest.fixture
def make_transport() -> Callable[[Handler], Transport]:
    def factory(handler: Handler) -> Transport:
        return Transport(httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    return factory


@pytest.fixture
def image_file(tmp_path: Path) -> Path:
    path = tmp_path / "cat.png"
    path.write_bytes(_image_bytes())
    return path


@pytest.fixture
def store(tmp_path: Path) -> ConfigStore:
    return ConfigStore(tmp_path / "config.json")


@pytest.fixture
def remote() -> dict[str, Handler]:
    """Holds the handler that plays the remote image host in API tests."""

    def not_configured(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"message": "no handler"})

    return {"handler": not_configured}


@pytest.fixture
async def client(
    store: ConfigStore, remote: dict[str, Handler], make_transport: Callable[[Handler], Transport]
) -> AsyncIterator[AsyncClient]:
    transport = make_transport(lambda request: remote["handler"](request))
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_http_transport] = lambda: transport
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
    await transport.aclose()
