"""Tests for SecretResolver."""

import pytest

from conftest import FakeSecretStore
from keel.domain.errors import SecretUnavailable
from keel.domain.services.secret_resolver import SecretResolver

PARAMETERS = {
    "username": "/app/registry/username",
    "password": "/app/registry/password",
}


class TestSecretResolver:
    @pytest.mark.asyncio
    async def test_resolve(self, secret_store):
        resolver = SecretResolver(secret_store, PARAMETERS)
        resolved = await resolver.resolve(["username", "password"])
        assert resolved["username"].value == "deployer"
        assert resolved["password"].value == "s3cr3t-pa55"
        assert resolver.names == frozenset(PARAMETERS)

    @pytest.mark.asyncio
    async def test_reads_fresh_every_call(self, secret_store):
        resolver = SecretResolver(secret_store, PARAMETERS)
        await resolver.resolve(["password"])
        secret_store.values["/app/registry/password"] = "rotated"
        resolved = await resolver.resolve(["password"])
        assert resolved["password"].value == "rotated"
        assert secret_store.reads.count("/app/registry/password") == 2

    @pytest.mark.asyncio
    async def test_unmapped_name(self, secret_store):
        resolver = SecretResolver(secret_store, PARAMETERS)
        with pytest.raises(SecretUnavailable, match="no parameter-store mapping"):
            await resolver.resolve(["api_token"])

    @pytest.mark.asyncio
    async def test_missing_path(self):
        resolver = SecretResolver(FakeSecretStore(), PARAMETERS)
        with pytest.raises(SecretUnavailable) as exc:
            await resolver.resolve(["username"])
        assert exc.value.name == "username"

    @pytest.mark.asyncio
    async def test_store_unreachable(self):
        resolver = SecretResolver(FakeSecretStore(reachable=False), PARAMETERS)
        with pytest.raises(SecretUnavailable, match="unreachable"):
            await resolver.resolve(["username"])

    @pytest.mark.asyncio
    async def test_values_not_logged(self, secret_store, caplog):
        resolver = SecretResolver(secret_store, PARAMETERS)
        with caplog.at_level("DEBUG", logger="keel"):
            await resolver.resolve(["password"])
        assert "s3cr3t-pa55" not in caplog.text
