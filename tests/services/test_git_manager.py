import base64
import json
import re
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from up2b.core.exceptions import AuthError, DeleteFailedError, NotFoundError, UploadError
from up2b.schemas.images import DeleteResponse, ImageItem
from up2b.services.git_manager import DELETE_MESSAGE, GitManager

CONTENTS = "https://api.github.com/repos/alice/pics/contents/up2b"


def _entry(name: str, sha: str, kind: str = "file") -> dict:
    return {
        "name": name,
        "type": kind,
        "sha": sha,
        "url": f"{CONTENTS}/{name}",
        "download_url": f"https://raw.githubusercontent.com/alice/pics/main/up2b/{name}" if kind == "file" else None,
    }


def _manager(make_transport: Callable, handler: Callable, **kwargs: object) -> GitManager:
    return GitManager("ghp_token", "alice", "pics", make_transport(handler), **kwargs)


class TestList:
    async def test_files_only(self, make_transport: Callable) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert str(request.url) == CONTENTS
            assert request.headers["Authorization"] == "Bearer ghp_token"
            assert request.headers["Accept"] == "application/vnd.github+json"
            assert request.headers["X-GitHub-Api-Version"] == "2022-11-28"
            return httpx.Response(200, json=[_entry("a.png", "s1"), _entry("nested", "s2", kind="dir")])

        images = await _manager(make_transport, handler).list()

        assert images == [
            ImageItem(
                url="https://raw.githubusercontent.com/alice/pics/main/up2b/a.png",
                deleted_id=f"{CONTENTS}/a.png---s1",
            )
        ]

    async def test_missing_directory_is_empty(self, make_transport: Callable) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"message": "Not Found"})

        assert await _manager(make_transport, handler).list() == []

    async def test_bad_token(self, make_transport: Callable) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"message": "Bad credentials"})

        with pytest.raises(AuthError, match="Bad credentials"):
            await _manager(make_transport, handler).list()

    async def test_custom_path(self, make_transport: Callable) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/repos/alice/pics/contents/img/2024"
            return httpx.Response(200, json=[])

        assert await _manager(make_transport, handler, path="img/2024").list() == []


class TestUpload:
    async def test_put_contents(self, make_transport: Callable, image_file: Path) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "PUT"
            assert re.fullmatch(r"/repos/alice/pics/contents/up2b/cat_\d+\.png", request.url.path)
            bodies.append(json.loads(request.content))
            name = request.url.path.rsplit("/", 1)[1]
            return httpx.Response(201, json={"content": _entry(name, "s9"), "commit": {}})

        item = await _manager(make_transport, handler).upload(image_file)

        assert bodies[0]["message"] == "up2b: cat.png"
        assert base64.b64decode(bodies[0]["content"]) == image_file.read_bytes()
        assert item.deleted_id.endswith("---s9")
        assert item.url.startswith("https://raw.githubusercontent.com/alice/pics/main/up2b/cat_")

    async def test_requires_created(self, make_transport: Callable, image_file: Path) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(422, json={"message": "Invalid request"})

        with pytest.raises(UploadError, match="Invalid request"):
            await _manager(make_transport, handler).upload(image_file)


class TestDelete:
    async def test_delete_with_sha(self, make_transport: Callable) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "DELETE"
            assert str(request.url) == f"{CONTENTS}/a.png"
            assert json.loads(request.content) == {"sha": "s1", "message": DELETE_MESSAGE}
            return httpx.Response(200, json={"commit": {}})

        response = await _manager(make_transport, handler).delete_image(f"{CONTENTS}/a.png---s1")
        assert response == DeleteResponse(success=True)

    async def test_not_found(self, make_transport: Callable) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"message": "Not Found"})

        with pytest.raises(NotFoundError):
            await _manager(make_transport, handler).delete(f"{CONTENTS}/a.png---s1")

    async def test_malformed_id(self, make_transport: Callable) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("nothing should be sent")

        with pytest.raises(DeleteFailedError):
            await _manager(make_transport, handler).delete("no-separator")


async def test_verify_reads_repository(make_transport: Callable) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == "https://api.github.com/repos/alice/pics"
        return httpx.Response(200, json={"full_name": "alice/pics"})

    assert await _manager(make_transport, handler).verify() is None
