from httpx import AsyncClient

from up2b.schemas.config import BackendCode, BackendIdentity
from up2b.services.config_store import ConfigStore
from up2b.services.registry import SMMS_API


async def test_read_default_config(client: AsyncClient) -> None:
    response = await client.get("/config")

    assert response.status_code == 200
    data = response.json()
    assert data["using"] == "SMMS"
    assert data["auth_config"] == {}


async def test_replace_config(client: AsyncClient, store: ConfigStore) -> None:
    body = {
        "using": "IMGSE",
        "automatic_compression": True,
        "auth_config": {"IMGSE": {"type": "CHEVERETO", "username": "u", "password": "p"}},
    }

    response = await client.put("/config", json=body)

    assert response.status_code == 200
    assert store.snapshot().using_identity == BackendIdentity(BackendCode.IMGSE)
    assert store.snapshot().automatic_compression is True


async def test_set_using(client: AsyncClient, store: ConfigStore) -> None:
    response = await client.put("/config/using", json={"key": "github"})

    assert response.status_code == 200
    assert store.snapshot().using == "GITHUB"


async def test_set_using_unknown(client: AsyncClient) -> None:
    response = await client.put("/config/using", json={"key": "flickr"})

    assert response.status_code == 400
    assert response.json() == {"code": "CONFIG", "detail": "unknown backend: flickr"}


async def test_set_auth_config(client: AsyncClient, store: ConfigStore) -> None:
    response = await client.put(
        "/config/auth/GITHUB",
        json={"auth_config": {"type": "GIT", "token": "t", "username": "u", "repository": "r", "path": "img"}},
    )

    assert response.status_code == 200
    assert store.get_auth_config(BackendIdentity(BackendCode.GITHUB)).path == "img"


async def test_set_auth_config_wrong_kind(client: AsyncClient, store: ConfigStore) -> None:
    response = await client.put(
        "/config/auth/SMMS",
        json={"auth_config": {"type": "GIT", "token": "t", "username": "u", "repository": "r"}},
    )

    assert response.status_code == 400
    assert response.json() == {"code": "CONFIG", "detail": "SMMS takes API credentials, got GIT"}
    assert store.get_auth_config(BackendIdentity(BackendCode.SMMS)) is None


async def test_replace_config_wrong_kind(client: AsyncClient, store: ConfigStore) -> None:
    body = {"using": "GITHUB", "auth_config": {"GITHUB": {"type": "API", "token": "t"}}}

    response = await client.put("/config", json=body)

    assert response.status_code == 400
    assert response.json()["code"] == "CONFIG"
    assert store.snapshot().using == "SMMS"


async def test_add_custom_twice(client: AsyncClient) -> None:
    body = {"name": "mine", "auth_config": {"type": "API", "token": "t", "api": SMMS_API.model_dump(mode="json")}}

    first = await client.post("/config/custom", json=body)
    second = await client.post("/config/custom", json=body)

    assert first.status_code == 200
    assert "CUSTOM-MINE" in first.json()["auth_config"]
    assert second.status_code == 409
    assert second.json()["code"] == "CUSTOM_EXISTS"


async def test_validation_error_format(client: AsyncClient) -> None:
    response = await client.put("/config/using", json={"nope": 1})

    assert response.status_code == 422
    error = response.json()["detail"][0]
    assert "loc" in error
    assert "msg" in error
    assert "url" not in error
