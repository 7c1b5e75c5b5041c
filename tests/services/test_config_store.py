import asyncio
import json
from pathlib import Path

import pytest

from up2b.core.exceptions import ConfigError, CustomExistsError
from up2b.schemas.config import (
    ApiAuthConfig,
    AppConfig,
    BackendCode,
    BackendIdentity,
    CheveretoAuthConfig,
    CheveretoSession,
    GitAuthConfig,
)
from up2b.services.config_store import ConfigStore
from up2b.services.registry import SMMS_API

IMGSE = BackendIdentity(BackendCode.IMGSE)


class TestLoad:
    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        store = ConfigStore(tmp_path / "nope.json")
        assert store.snapshot() == AppConfig()

    def test_reads_existing_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text(
            json.dumps(
                {
                    "using": "GITHUB",
                    "auth_config": {"GITHUB": {"type": "GIT", "token": "t", "username": "u", "repository": "r"}},
                }
            )
        )
        config = ConfigStore(path).snapshot()

        assert config.using == "GITHUB"
        assert config.get_auth_config(BackendIdentity(BackendCode.GITHUB)) == GitAuthConfig(
            token="t", username="u", repository="r"
        )

    def test_invalid_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text('{"auth_config": {"SMMS": {"type": "NOPE"}}}')

        with pytest.raises(ConfigError):
            ConfigStore(path)


class TestWrites:
    async def test_set_auth_config_persists(self, store: ConfigStore) -> None:
        before = store.snapshot()
        await store.set_auth_config(IMGSE, CheveretoAuthConfig(username="a", password="b"))

        assert store.get_auth_config(IMGSE) == CheveretoAuthConfig(username="a", password="b")
        assert before.auth_config == {}
        reloaded = ConfigStore(store.path)
        assert reloaded.snapshot() == store.snapshot()

    async def test_round_trip_with_descriptor_and_session(self, store: ConfigStore) -> None:
        await store.set_auth_config(BackendIdentity.custom("mine"), ApiAuthConfig(token="x", api=SMMS_API))
        session = CheveretoSession(auth_token="t" * 40, cookie="a=1; b=2")
        await store.set_auth_config(IMGSE, CheveretoAuthConfig(username="a", password="b", session=session))

        reloaded = ConfigStore(store.path).snapshot()

        assert reloaded.auth_config["CUSTOM-MINE"].api == SMMS_API
        assert reloaded.auth_config["IMGSE"].session == session

    async def test_add_custom_is_unique(self, store: ConfigStore) -> None:
        await store.add_custom(BackendIdentity.custom("mine"), ApiAuthConfig(token="x", api=SMMS_API))

        with pytest.raises(CustomExistsError):
            await store.add_custom(BackendIdentity.custom("MINE"), ApiAuthConfig(token="y", api=SMMS_API))
        assert store.snapshot().auth_config["CUSTOM-MINE"].token == "x"

    async def test_add_custom_rejects_builtin(self, store: ConfigStore) -> None:
        with pytest.raises(ConfigError):
            await store.add_custom(IMGSE, ApiAuthConfig(token="x"))

    async def test_set_using(self, store: ConfigStore) -> None:
        await store.set_using(IMGSE)
        assert store.snapshot().using_identity == IMGSE

    async def test_replace(self, store: ConfigStore) -> None:
        await store.replace(AppConfig(using="GITHUB", use_proxy=True, proxy="http://127.0.0.1:7890"))
        assert store.snapshot().active_proxy == "http://127.0.0.1:7890"

    async def test_concurrent_writers_keep_every_change(self, store: ConfigStore) -> None:
        names = [f"host{i}" for i in range(10)]
        await asyncio.gather(
            *(store.add_custom(BackendIdentity.custom(name), ApiAuthConfig(token=name)) for name in names)
        )

        assert len(store.snapshot().custom_identities()) == 10

    async def test_memory_only_store(self) -> None:
        store = ConfigStore()
        await store.set_using(IMGSE)
        assert store.snapshot().using == "IMGSE"


class TestCredentialKinds:
    @pytest.mark.parametrize(
        ("identity", "auth_config"),
        [
            (BackendIdentity(BackendCode.SMMS), GitAuthConfig(token="t", username="u", repository="r")),
            (BackendIdentity(BackendCode.GITHUB), ApiAuthConfig(token="t")),
            (IMGSE, ApiAuthConfig(token="t")),
            (BackendIdentity(BackendCode.IMGTG), GitAuthConfig(token="t", username="u", repository="r")),
            (BackendIdentity.custom("mine"), CheveretoAuthConfig(username="a", password="b")),
        ],
    )
    async def test_set_auth_config_rejects_other_kind(self, store: ConfigStore, identity, auth_config) -> None:
        with pytest.raises(ConfigError):
            await store.set_auth_config(identity, auth_config)

        assert store.get_auth_config(identity) is None
        assert not store.path.exists()

    async def test_add_custom_needs_api_credentials(self, store: ConfigStore) -> None:
        with pytest.raises(ConfigError):
            await store.add_custom(BackendIdentity.custom("mine"), GitAuthConfig(token="t", username="u", repository="r"))

        assert store.snapshot().custom_identities() == []

    async def test_replace_rejects_mismatched_entry(self, store: ConfigStore) -> None:
        await store.set_using(IMGSE)
        config = AppConfig(
            using="SMMS",
            auth_config={
                "SMMS": ApiAuthConfig(token="t"),
                "IMGSE": GitAuthConfig(token="t", username="u", repository="r"),
            },
        )

        with pytest.raises(ConfigError):
            await store.replace(config)

        assert store.snapshot().using == "IMGSE"
        assert store.snapshot().auth_config == {}

    async def test_replace_rejects_unknown_using(self, store: ConfigStore) -> None:
        with pytest.raises(ConfigError):
            await store.replace(AppConfig(using="FLICKR"))

        assert store.snapshot().using == "SMMS"

    async def test_replace_rejects_unknown_backend_key(self, store: ConfigStore) -> None:
        with pytest.raises(ConfigError):
            await store.replace(AppConfig(auth_config={"FLICKR": ApiAuthConfig(token="t")}))

    async def test_replace_accepts_every_builtin_kind(self, store: ConfigStore) -> None:
        config = AppConfig(
            using="CUSTOM-MINE",
            auth_config={
                "SMMS": ApiAuthConfig(token="t"),
                "GITHUB": GitAuthConfig(token="t", username="u", repository="r"),
                "IMGSE": CheveretoAuthConfig(username="a", password="b"),
                "IMGTG": CheveretoAuthConfig(username="a", password="b"),
                "CUSTOM-MINE": ApiAuthConfig(token="t", api=SMMS_API),
            },
        )

        await store.replace(config)

        assert store.snapshot().using_identity == BackendIdentity.custom("mine")
        assert len(store.snapshot().auth_config) == 5
