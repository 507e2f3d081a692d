"""Tests for PuppetClient (puppetry/rpc/client.py) against an in-process RPCServer."""

from __future__ import annotations

import json

import httpx
import pytest

from puppetry.core.errors import RPCError
from puppetry.ident import IdentServer
from puppetry.puppets import ConnectParams, PuppetManager, SetupParams
from puppetry.rpc import PuppetClient, RPCServer
from tests.fakes import FakeConnectionFactory


def _wire(server: RPCServer, seen: list[httpx.Request] | None = None) -> httpx.MockTransport:
    async def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        response = await server.dispatch(json.loads(request.content))
        return httpx.Response(200, json=response.to_dict())

    return httpx.MockTransport(handler)


def _make_client(token: str | None = None, seen=None):
    factory = FakeConnectionFactory()
    manager = PuppetManager(IdentServer(), connection_factory=factory, settle_timeout=0.05)
    server = RPCServer(manager)
    client = PuppetClient("http://puppetry.test", token=token, transport=_wire(server, seen))
    return client, manager, factory


class TestPuppetClient:
    @pytest.mark.asyncio
    async def test_round_trip_lifecycle(self):
        client, _, factory = _make_client()
        await client.setup(SetupParams(server="irc.example.net"))
        await client.connect(ConnectParams(uid="u1", nick="alice"))
        await client.connect(ConnectParams(uid="u2", nick="bob"))

        assert await client.get_uid_to_nicks() == {"u1": "alice", "u2": "bob"}
        assert await client.connected("u1") is True

        await client.send_raw("", "PRIVMSG #chan :hi from ${NICK}", interpolate_nick=True)
        assert [c.sent for c in factory.created] == [
            ["PRIVMSG #chan :hi from alice"],
            ["PRIVMSG #chan :hi from bob"],
        ]

        await client.nick("u2", "bobby")
        assert await client.get_nick("u2") == "bobby"

        await client.quit_if_connected("u1", "bye")
        assert await client.get_uid_to_nicks() == {"u2": "bobby"}

    @pytest.mark.asyncio
    async def test_connect_error_raises_rpc_error(self):
        client, _, factory = _make_client()
        await client.setup(SetupParams(server="irc.example.net"))
        factory.fail_with = OSError("refused")
        with pytest.raises(RPCError) as exc_info:
            await client.connect(ConnectParams(uid="u1", nick="alice"))
        assert exc_info.value.code == "-32000"
        assert exc_info.value.details["method"] == "Connect"

    @pytest.mark.asyncio
    async def test_sends_bearer_token(self):
        seen: list[httpx.Request] = []
        client, _, _ = _make_client(token="s3cret", seen=seen)
        await client.get_uid_to_nicks()
        assert seen[0].headers["Authorization"] == "Bearer s3cret"

    @pytest.mark.asyncio
    async def test_retries_transport_connect_errors(self):
        attempts = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": True})

        client = PuppetClient("http://puppetry.test", transport=httpx.MockTransport(handler))
        assert await client.connected("u1") is True
        assert attempts == 2

    @pytest.mark.asyncio
    async def test_http_error_not_retried(self):
        attempts = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            return httpx.Response(401)

        client = PuppetClient("http://puppetry.test", transport=httpx.MockTransport(handler))
        with pytest.raises(httpx.HTTPStatusError):
            await client.get_uid_to_nicks()
        assert attempts == 1
