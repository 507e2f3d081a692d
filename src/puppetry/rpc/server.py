"""JSON-RPC 2.0 server exposing a PuppetManager over HTTP."""

from __future__ import annotations

import asyncio
import hmac
import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from aiohttp import web
from loguru import logger

from puppetry.core.constants import DEFAULT_RPC_PORT
from puppetry.core.errors import PuppetConnectionError, PuppetryConfigurationError
from puppetry.puppets.manager import PuppetManager, split_server_address
from puppetry.puppets.params import (
    ConnectParams,
    NickParams,
    QuitParams,
    SendRawParams,
    SetupParams,
)

# JSON-RPC error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
CONNECTION_ERROR = -32000

Handler = Callable[[Any], Awaitable[Any]]
Parser = Callable[[Any], Any]


@dataclass
class RPCResponse:
    """JSON-RPC response."""

    result: Any = None
    error: dict[str, Any] | None = None
    id: Any = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"jsonrpc": "2.0", "id": self.id}
        if self.error:
            d["error"] = self.error
        else:
            d["result"] = self.result
        return d


def _error(code: int, message: str, req_id: Any = None, data: Any = None) -> RPCResponse:
    err: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        err["data"] = data
    return RPCResponse(error=err, id=req_id)


def _no_params(params: Any) -> None:
    return None


def _setup_params(params: Any) -> SetupParams:
    setup = SetupParams.from_dict(params or {})
    if setup.server:
        split_server_address(setup.server, tls=setup.use_tls)
    return setup


def _send_raw_params(params: Any) -> SendRawParams:
    return SendRawParams.from_dict(params or {})


def _uid_param(params: Any) -> str:
    """GetNick/Connected accept a bare uid or {"uid": ...}."""
    if isinstance(params, str):
        return params
    if isinstance(params, dict) and "uid" in params:
        return str(params["uid"])
    if isinstance(params, list) and len(params) == 1:
        return str(params[0])
    raise ValueError("expected a uid")


class RPCServer:
    """Serves the puppet manager's methods on POST / (GET / is a health check)."""

    def __init__(
        self,
        manager: PuppetManager,
        *,
        host: str = "127.0.0.1",
        port: int = DEFAULT_RPC_PORT,
        token: str | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self._manager = manager
        self._token = token
        self._runner: web.AppRunner | None = None
        # name -> (params conversion, manager call)
        self._methods: dict[str, tuple[Parser, Handler]] = {
            "Setup": (_setup_params, self._setup),
            "GetUIDToNicks": (_no_params, self._get_uid_to_nicks),
            "Connect": (ConnectParams.from_dict, self._manager.connect),
            "QuitIfConnected": (QuitParams.from_dict, self._manager.quit_if_connected),
            "Nick": (NickParams.from_dict, self._manager.nick),
            "SendRaw": (_send_raw_params, self._manager.send_raw),
            "GetNick": (_uid_param, self._manager.get_nick),
            "Connected": (_uid_param, self._manager.connected),
        }

    @property
    def methods(self) -> list[str]:
        return list(self._methods)

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/", self._handle_request)
        app.router.add_get("/", self._handle_get)
        return app

    async def start(self) -> None:
        if self._runner is not None:
            return
        self._runner = web.AppRunner(self.make_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info("RPC server listening on http://{}:{}", self.host, self.port)

    async def stop(self) -> None:
        if self._runner is None:
            return
        await self._runner.cleanup()
        self._runner = None
        logger.info("RPC server stopped")

    def _authorized(self, request: web.Request) -> bool:
        if not self._token:
            return True
        header = request.headers.get("Authorization", "")
        return hmac.compare_digest(header, f"Bearer {self._token}")

    async def _handle_get(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            raise web.HTTPUnauthorized()
        return web.json_response({"status": "ok", "methods": self.methods})

    async def _handle_request(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            raise web.HTTPUnauthorized()
        try:
            data = json.loads(await request.text())
        except (json.JSONDecodeError, UnicodeDecodeError):
            return web.json_response(_error(PARSE_ERROR, "Parse error").to_dict())

        if isinstance(data, list):
            if not data:
                return web.json_response(_error(INVALID_REQUEST, "Invalid request").to_dict())
            responses = await asyncio.gather(*(self.dispatch(req) for req in data))
            return web.json_response([r.to_dict() for r in responses])

        response = await self.dispatch(data)
        return web.json_response(response.to_dict())

    async def dispatch(self, data: Any) -> RPCResponse:
        """Run one JSON-RPC request object against the manager."""
        if not isinstance(data, dict) or not isinstance(data.get("method"), str):
            return _error(INVALID_REQUEST, "Invalid request")

        req_id = data.get("id")
        name = data["method"]
        method = self._methods.get(name)
        if method is None:
            return _error(METHOD_NOT_FOUND, f"Method not found: {name}", req_id)
        parse, handler = method

        params = data.get("params")
        try:
            args = parse(params)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.debug("RPC {}: invalid params {!r}: {}", name, params, exc)
            return _error(INVALID_PARAMS, f"Invalid params: {exc}", req_id)

        try:
            result = await handler(args)
        except PuppetConnectionError as exc:
            return _error(CONNECTION_ERROR, str(exc), req_id, data={"code": exc.code})
        except PuppetryConfigurationError as exc:
            return _error(INTERNAL_ERROR, str(exc), req_id, data={"code": exc.code})
        except Exception as exc:
            logger.exception("RPC {} failed: {}", name, exc)
            return _error(INTERNAL_ERROR, "Internal error", req_id)
        return RPCResponse(result=result, id=req_id)

    async def _setup(self, params: SetupParams) -> None:
        # Wire params never carry a server handle; the manager's own ident server applies
        self._manager.setup(params)

    async def _get_uid_to_nicks(self, params: None) -> dict[str, str]:
        return await self._manager.get_uid_to_nicks()
