"""Async JSON-RPC client for a remote puppet manager. Uses tenacity for retries."""

from __future__ import annotations

import itertools
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from puppetry.core.errors import RPCError
from puppetry.puppets.params import (
    ConnectParams,
    InterpolationParams,
    NickParams,
    QuitParams,
    SendRawParams,
    SetupParams,
)

# Only retry when the request never reached the server; RPC calls are not idempotent
DEFAULT_RETRY = retry(
    stop=stop_after_attempt(5),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((httpx.ConnectError, httpx.ConnectTimeout)),
    reraise=True,
)


class PuppetClient:
    """Remote counterpart of PuppetManager.

    Callbacks in ConnectParams cannot cross the wire and are ignored.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/") + "/"
        self._token = token
        self._timeout = timeout
        self._transport = transport
        self._ids = itertools.count(1)

    def _headers(self) -> dict[str, str]:
        h: dict[str, str] = {"Accept": "application/json"}
        if self._token:
            h["Authorization"] = f"Bearer {self._token}"
        return h

    @DEFAULT_RETRY
    async def call(self, method: str, params: Any = None) -> Any:
        """Invoke one method; raise RPCError if the server returns an error."""
        payload = {"jsonrpc": "2.0", "method": method, "params": params, "id": next(self._ids)}
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            resp = await client.post(self._base_url, json=payload, headers=self._headers())
            resp.raise_for_status()
            data = resp.json()

        error = data.get("error") if isinstance(data, dict) else None
        if error:
            raise RPCError(
                str(error.get("message", "RPC error")),
                code=str(error.get("code")),
                details={"method": method, "data": error.get("data")},
            )
        return data.get("result") if isinstance(data, dict) else None

    async def setup(self, params: SetupParams) -> None:
        await self.call("Setup", params.to_dict())

    async def get_uid_to_nicks(self) -> dict[str, str]:
        return dict(await self.call("GetUIDToNicks") or {})

    async def connect(self, params: ConnectParams) -> None:
        await self.call("Connect", params.to_dict())

    async def quit_if_connected(self, uid: str, quit_message: str = "") -> None:
        await self.call("QuitIfConnected", QuitParams(uid, quit_message).to_dict())

    async def nick(self, uid: str, nick: str) -> None:
        await self.call("Nick", NickParams(uid, nick).to_dict())

    async def send_raw(self, uid: str, *messages: str, interpolate_nick: bool = False) -> None:
        """Send raw lines; a blank uid sends to every puppet."""
        params = SendRawParams(
            uid=uid,
            messages=list(messages),
            interpolation=InterpolationParams(nick=interpolate_nick),
        )
        await self.call("SendRaw", params.to_dict())

    async def get_nick(self, uid: str) -> str:
        return str(await self.call("GetNick", {"uid": uid}) or "")

    async def connected(self, uid: str) -> bool:
        return bool(await self.call("Connected", {"uid": uid}))
