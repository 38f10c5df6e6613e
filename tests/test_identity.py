"""Tests for IdentityProvider and LocalEnvironment."""

import re
import socket

import pytest

from keepsake import environment as environment_module
from keepsake.environment import Environment, LocalEnvironment, host_resolves
from keepsake.identity import USER_ID_KEY, IdentityProvider, generate_user_id
from keepsake.memory import LocalStore


def test_generated_id_shape():
    assert re.fullmatch(r"\d{13}-[0-9a-f]{12}", generate_user_id())


def test_generated_ids_differ():
    assert generate_user_id() != generate_user_id()


@pytest.mark.asyncio
class TestIdentityProvider:
    async def test_creates_and_persists(self, environment: LocalEnvironment, store: LocalStore):
        provider = IdentityProvider(environment)

        user_id = await provider.current_id()

        assert await store.read_setting(USER_ID_KEY) == user_id

    async def test_idempotent(self, environment: LocalEnvironment):
        provider = IdentityProvider(environment)
        assert await provider.current_id() == await provider.current_id()

    async def test_survives_new_provider(self, environment: LocalEnvironment):
        first = await IdentityProvider(environment).current_id()
        second = await IdentityProvider(environment).current_id()
        assert first == second

    async def test_uses_existing_setting(self, environment: LocalEnvironment):
        await environment.write_setting(USER_ID_KEY, "preexisting")
        assert await IdentityProvider(environment).current_id() == "preexisting"


class TestLocalEnvironment:
    def test_satisfies_protocol(self, environment: LocalEnvironment):
        assert isinstance(environment, Environment)

    def test_forced_state(self, store: LocalStore):
        env = LocalEnvironment(store, remote_url="https://example.test", online=False)
        assert env.is_online() is False
        env.set_online(True)
        assert env.is_online() is True

    def test_no_remote_is_offline(self, store: LocalStore):
        assert LocalEnvironment(store).is_online() is False

    def test_probes_remote_host(self, store: LocalStore, monkeypatch):
        seen = []

        def fake_resolves(hostname: str) -> bool:
            seen.append(hostname)
            return True

        monkeypatch.setattr(environment_module, "host_resolves", fake_resolves)
        env = LocalEnvironment(store, remote_url="https://project.supabase.test/")

        assert env.is_online() is True
        assert seen == ["project.supabase.test"]


def test_host_resolves_handles_dns_failure(monkeypatch):
    def fail(*args, **kwargs):
        raise socket.gaierror("no such host")

    monkeypatch.setattr(socket, "getaddrinfo", fail)
    assert host_resolves("nowhere.invalid") is False
