"""Puppet manager: one IRC connection per remote identity."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Callable

from loguru import logger

from puppetry.core.constants import (
    DEFAULT_PING_INTERVAL,
    IRC_PLAIN_PORT,
    IRC_TLS_PORT,
    NICK_PLACEHOLDER,
)
from puppetry.core.errors import (
    PortCollisionError,
    PuppetConnectionError,
    PuppetryConfigurationError,
)
from puppetry.ident import IdentServer, ident_username
from puppetry.puppets.connection import PuppetConnection
from puppetry.puppets.params import (
    Connection,
    ConnectParams,
    NickParams,
    QuitParams,
    SendRawParams,
    SetupParams,
)

ConnectionFactory = Callable[..., Connection]


def split_server_address(server: str, *, tls: bool) -> tuple[str, int]:
    """Split host[:port]; the port defaults by TLS setting.

    Raises ValueError for a non-numeric or out-of-range port.
    """
    default = IRC_TLS_PORT if tls else IRC_PLAIN_PORT
    if server.startswith("["):
        host, _, rest = server[1:].partition("]")
        port = rest[1:] if rest.startswith(":") else ""
    elif server.count(":") == 1:
        host, port = server.split(":")
    else:
        return server, default
    if not port:
        return host, default
    value = int(port)
    if not 0 < value <= 65535:
        raise ValueError(f"port out of range: {value}")
    return host, value


class PuppetManager:
    """Owns every puppet connection and keeps the ident server in step.

    Every operation except ``connect`` treats an unknown uid as a no-op,
    since callers routinely race disconnects against requests in flight.
    """

    def __init__(
        self,
        ident_server: IdentServer | None = None,
        *,
        connection_factory: ConnectionFactory = PuppetConnection,
        ping_interval: int = DEFAULT_PING_INTERVAL,
        settle_timeout: float = 1.0,
        settle_poll_interval: float = 0.05,
    ):
        self._config = SetupParams(ident_server=ident_server)
        self._default_ident = ident_server
        self._connection_factory = connection_factory
        self._ping_interval = ping_interval
        self._settle_timeout = settle_timeout
        self._settle_poll_interval = settle_poll_interval
        self._puppets: dict[str, Connection] = {}
        self._lock = asyncio.Lock()
        # Serialises connect and quit for the same uid
        self._uid_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._configured = False

    @property
    def config(self) -> SetupParams:
        return self._config

    def setup(self, params: SetupParams) -> None:
        """Replace the shared connection settings."""
        if params.ident_server is None:
            params.ident_server = self._default_ident
        self._config = params
        self._configured = True
        logger.info("Puppet manager configured for {} (tls={})", params.server, params.use_tls)

    async def _targets(self, uid: str) -> list[Connection]:
        """Connections addressed by uid; empty uid means all of them."""
        async with self._lock:
            if not uid:
                return list(self._puppets.values())
            conn = self._puppets.get(uid)
            return [conn] if conn is not None else []

    async def _get(self, uid: str) -> Connection | None:
        async with self._lock:
            return self._puppets.get(uid)

    async def get_uid_to_nicks(self) -> dict[str, str]:
        async with self._lock:
            return {uid: conn.nickname for uid, conn in self._puppets.items()}

    async def connect(self, params: ConnectParams) -> None:
        """Connect a puppet, bind it for ident, then start its receive loop."""
        if not self._configured or not self._config.server:
            raise PuppetryConfigurationError(
                "setup must be called before connect",
                code="not_configured",
            )
        async with self._uid_locks[params.uid]:
            await self._connect(params)

    async def _connect(self, params: ConnectParams) -> None:
        config = self._config
        uid = params.uid

        webirc = None
        if params.webirc_suffix:
            webirc = f"{config.webirc_password} {params.webirc_suffix}"

        conn = self._connection_factory(
            params.nick,
            username=params.username or ident_username(uid),
            realname=params.realname or params.nick,
            webirc=webirc,
            ping_interval=self._ping_interval,
        )
        conn.add_callback("KICK", self._rejoin_on_kick(conn))
        conn.add_callback("NICK", self._rebind_on_nick(conn, uid))
        for code, callback in params.callbacks.items():
            conn.add_callback(code, callback)

        try:
            hostname, port = split_server_address(config.server, tls=config.use_tls)
            await conn.open(
                hostname,
                port,
                tls=config.use_tls,
                tls_verify=not config.insecure_skip_verify,
                password=config.server_password or None,
            )
        except Exception as exc:
            logger.warning("Failed to connect puppet {} to {}: {}", uid, config.server, exc)
            raise PuppetConnectionError(
                f"error opening irc connection: {exc}",
                code="connect_failed",
                details={"uid": uid, "server": config.server},
                original_error=exc,
            ) from exc

        entry = None
        try:
            await self._await_local_port(conn)
            if config.ident_server is not None:
                entry = await config.ident_server.bind(conn, uid)
        except (PortCollisionError, ValueError) as exc:
            await conn.quit("Connection rejected")
            raise PuppetConnectionError(
                f"error binding irc connection: {exc}",
                code="bind_failed",
                details={"uid": uid, "server": config.server},
                original_error=exc,
            ) from exc

        conn.start_loop()
        async with self._lock:
            previous = self._puppets.get(uid)
            self._puppets[uid] = conn

        if previous is not None and previous is not conn and previous.connected:
            logger.info("Replacing existing connection for puppet {}", uid)
            await previous.quit("Reconnecting")

        logger.info(
            "Connected puppet {} to {} as {} (local_port={}, ident={})",
            uid,
            config.server,
            conn.nickname,
            conn.local_port,
            entry.username if entry else "<unbound>",
        )

    async def _await_local_port(self, conn: Connection) -> None:
        """Settle wait: poll until the socket's local port is readable."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._settle_timeout
        while conn.local_port is None and loop.time() < deadline:
            await asyncio.sleep(self._settle_poll_interval)

    def _rejoin_on_kick(self, conn: Connection):
        async def handler(message) -> None:
            params = getattr(message, "params", [])
            if len(params) >= 2 and params[1] == conn.nickname:
                logger.info("Puppet {} kicked from {}; rejoining", conn.nickname, params[0])
                await conn.join(params[0])

        return handler

    def _rebind_on_nick(self, conn: Connection, uid: str):
        """Refresh the ident entry's nick snapshot when our nick changes."""

        async def handler(message) -> None:
            params = getattr(message, "params", [])
            if not params or params[0] != conn.nickname:
                return
            ident = self._config.ident_server
            if ident is None or await self._get(uid) is not conn:
                return
            try:
                await ident.bind(conn, uid)
            except (PortCollisionError, ValueError) as exc:
                logger.warning("Could not rebind puppet {} after nick change: {}", uid, exc)

        return handler

    async def quit_if_connected(self, params: QuitParams) -> None:
        """Quit and forget a puppet; waits out a connect in flight for the same uid."""
        async with self._uid_locks[params.uid]:
            async with self._lock:
                conn = self._puppets.pop(params.uid, None)

            if conn is not None and conn.connected:
                await conn.quit(params.quit_message)
                logger.info("Puppet {} quit: {}", params.uid, params.quit_message)

            if self._config.ident_server is not None:
                await self._config.ident_server.unbind(params.uid)

    async def send_raw(self, params: SendRawParams) -> None:
        for conn in await self._targets(params.uid):
            for message in params.messages:
                line = message
                if params.interpolation.nick:
                    line = line.replace(NICK_PLACEHOLDER, conn.nickname)
                await conn.send_raw(line)

    async def get_nick(self, uid: str) -> str:
        conn = await self._get(uid)
        return conn.nickname if conn is not None else ""

    async def connected(self, uid: str) -> bool:
        conn = await self._get(uid)
        return bool(conn is not None and conn.connected)

    async def nick(self, params: NickParams) -> None:
        conn = await self._get(params.uid)
        if conn is not None:
            await conn.set_nick(params.nick)

    async def stop(self, quit_message: str = "Shutting down") -> None:
        """Quit and unbind every puppet."""
        async with self._lock:
            uids = list(self._puppets)
        for uid in uids:
            await self.quit_if_connected(QuitParams(uid=uid, quit_message=quit_message))
