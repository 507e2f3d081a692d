"""pydle-backed puppet connection."""

from __future__ import annotations

import asyncio
import inspect
from collections import defaultdict

import pydle
from loguru import logger

from puppetry.core.constants import DEFAULT_PING_INTERVAL
from puppetry.puppets.params import EventHandler


class PuppetConnection(pydle.Client):
    """Single IRC connection acting for one remote identity.

    The receive loop pydle starts on connect stays parked until
    ``start_loop()`` is called, so the owner can bind the socket's local
    port before any server message is dispatched.
    """

    def __init__(
        self,
        nick: str,
        *,
        username: str | None = None,
        realname: str | None = None,
        webirc: str | None = None,
        ping_interval: int = DEFAULT_PING_INTERVAL,
        **kwargs,
    ):
        super().__init__(nick, username=username, realname=realname, **kwargs)
        self._webirc = webirc
        self._ping_interval = ping_interval
        self._pinger_task: asyncio.Task | None = None
        self._callbacks: dict[str, list[EventHandler]] = defaultdict(list)
        self._loop_gate = asyncio.Event()

    @property
    def local_port(self) -> int | None:
        """Local (ephemeral) port of the socket, None until connected."""
        conn = getattr(self, "connection", None)
        writer = getattr(conn, "writer", None) if conn else None
        if writer is None:
            return None
        sockname = writer.get_extra_info("sockname")
        if not sockname:
            return None
        return int(sockname[1])

    async def open(
        self,
        hostname: str,
        port: int,
        *,
        tls: bool,
        tls_verify: bool,
        password: str | None = None,
    ) -> None:
        """Open the socket and send registration; the loop stays parked."""
        await self.connect(
            hostname=hostname,
            port=port,
            password=password,
            tls=tls,
            tls_verify=tls_verify,
        )

    def start_loop(self) -> None:
        self._loop_gate.set()

    async def handle_forever(self):
        await self._loop_gate.wait()
        await super().handle_forever()

    async def _register(self):
        # WEBIRC has to precede CAP/PASS/NICK/USER
        if self._webirc:
            await self.rawmsg("WEBIRC", *self._webirc.split(" "))
        await super()._register()

    def add_callback(self, code: str, handler: EventHandler) -> None:
        self._callbacks[code.upper()].append(handler)

    async def on_raw(self, message):
        await super().on_raw(message)
        # pydle parses numerics to int; callbacks are keyed "001", "433", ...
        if isinstance(message.command, int):
            cmd = str(message.command).zfill(3)
        else:
            cmd = str(message.command).upper()
        for handler in list(self._callbacks.get(cmd, ())):
            try:
                result = handler(message)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.exception("Puppet {} callback for {} failed: {}", self.nickname, message.command, exc)

    async def send_raw(self, line: str) -> None:
        """Send one line verbatim."""
        await self._send(line.rstrip("\r\n") + "\r\n")

    async def set_nick(self, nick: str) -> None:
        await self.set_nickname(nick)

    async def on_connect(self):
        await super().on_connect()
        logger.debug("IRC puppet {} connected", self.nickname)
        if self._pinger_task:
            self._pinger_task.cancel()
        self._pinger_task = asyncio.create_task(self._pinger())

    async def on_disconnect(self, expected):
        # Release a loop that was never started so its task can exit
        self._loop_gate.set()
        if self._pinger_task:
            self._pinger_task.cancel()
            self._pinger_task = None
        await super().on_disconnect(expected)

    async def _pinger(self) -> None:
        """Send PING every ping_interval seconds to keep connection alive."""
        while True:
            await asyncio.sleep(self._ping_interval)
            try:
                await self.rawmsg("PING", "keep-alive")
            except Exception:
                break
