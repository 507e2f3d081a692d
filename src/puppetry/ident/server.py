"""Ident server: answers RFC 1413 queries for ports bound to puppets."""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

from puppetry.core.errors import IdentListenerError, IdentParseError, PortCollisionError
from puppetry.ident.protocol import (
    error_reply,
    ident_username,
    parse_request,
    userid_reply,
    valid_port,
)
from puppetry.ident.rwlock import ReadWriteLock

if TYPE_CHECKING:
    from puppetry.puppets.params import Connection


@dataclass(frozen=True)
class PortmapEntry:
    """Ident identity of one bound puppet connection."""

    uid: str
    username: str
    nickname: str
    local_port: int


class IdentServer:
    """TCP ident server keyed by puppet uid, looked up by local port.

    A query can arrive before the puppet that owns the port has been bound,
    because the IRC server asks as soon as the TCP connection is accepted.
    Lookups therefore poll for up to ``lookup_timeout`` seconds before
    answering NO-USER. This narrows the race but does not close it.
    """

    def __init__(
        self,
        *,
        lookup_timeout: float = 2.0,
        poll_interval: float = 0.1,
        request_timeout: float = 30.0,
    ) -> None:
        self._lookup_timeout = lookup_timeout
        self._poll_interval = poll_interval
        self._request_timeout = request_timeout
        self._lock = ReadWriteLock()
        self._portmap: dict[str, PortmapEntry] = {}
        self._server: asyncio.AbstractServer | None = None

    @property
    def port(self) -> int | None:
        """Port the listener is bound to, once started."""
        if not self._server or not self._server.sockets:
            return None
        return self._server.sockets[0].getsockname()[1]

    async def start(self, port: int, host: str | None = None) -> None:
        """Open the listener; each accepted client is served in its own task."""
        try:
            self._server = await asyncio.start_server(self._handle_client, host=host, port=port)
        except OSError as exc:
            raise IdentListenerError(
                f"Could not listen on port {port}",
                code="listen_failed",
                details={"host": host, "port": port},
                original_error=exc,
            ) from exc
        logger.info("ident: started ident server listening on port {}", self.port)

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("ident: stopped ident server")

    async def bind(self, conn: Connection, uid: str) -> PortmapEntry:
        """Record (or refresh) the entry for uid at conn's local port."""
        local_port = conn.local_port
        if local_port is None:
            raise ValueError(f"connection for {uid} has no local port")

        entry = PortmapEntry(
            uid=uid,
            username=ident_username(uid),
            nickname=conn.nickname,
            local_port=local_port,
        )

        async with self._lock.write():
            existing = self._find(local_port)
            if existing is not None and existing.uid != uid:
                logger.error(
                    "ident: could not bind {} to local port {} already assigned to {}",
                    uid,
                    local_port,
                    existing.uid,
                )
                raise PortCollisionError(
                    f"local port {local_port} already bound",
                    code="port_collision",
                    details={"local_port": local_port, "uid": uid, "existing_uid": existing.uid},
                )
            self._portmap[uid] = entry

        logger.info(
            "ident: binding local port {} to username {} (nick {})",
            local_port,
            entry.username,
            entry.nickname,
        )
        return entry

    async def unbind(self, uid: str) -> None:
        async with self._lock.write():
            entry = self._portmap.pop(uid, None)
        if entry is not None:
            logger.debug("ident: unbound {} from local port {}", uid, entry.local_port)

    async def lookup(self, local_port: int) -> PortmapEntry | None:
        async with self._lock.read():
            return self._find(local_port)

    async def entries(self) -> list[PortmapEntry]:
        async with self._lock.read():
            return list(self._portmap.values())

    def _find(self, local_port: int) -> PortmapEntry | None:
        # Caller holds the lock. Linear scan; puppet counts are small.
        for entry in self._portmap.values():
            if entry.local_port == local_port:
                return entry
        return None

    async def _await_entry(self, local_port: int) -> PortmapEntry | None:
        """Poll lookup until the port is bound or lookup_timeout expires."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._lookup_timeout
        while True:
            entry = await self.lookup(local_port)
            remaining = deadline - loop.time()
            if entry is not None or remaining <= 0:
                return entry
            await asyncio.sleep(min(self._poll_interval, remaining))

    async def respond(self, line: bytes) -> bytes:
        """Build the reply for one request line. Raises IdentParseError."""
        local_port, remote_port = parse_request(line)
        # No socket can hold a port outside 1..65535, so skip the wait
        if not (valid_port(local_port) and valid_port(remote_port)):
            return error_reply(local_port, remote_port)

        entry = await self._await_entry(local_port)
        if entry is None:
            return error_reply(local_port, remote_port)
        return userid_reply(local_port, remote_port, entry.username)

    async def _handle_client(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        requester = writer.get_extra_info("peername")
        try:
            try:
                line = await asyncio.wait_for(reader.readline(), self._request_timeout)
            except asyncio.TimeoutError:
                logger.warning("ident: request from {} timed out", requester)
                return
            except ValueError as exc:
                logger.warning("ident: oversized request from {}: {}", requester, exc)
                return

            try:
                reply = await self.respond(line)
            except IdentParseError:
                logger.warning("ident: failed to parse ident request {!r} from {}", line, requester)
                return

            logger.info("ident: replying to {}: {!r}", requester, reply)
            writer.write(reply)
            await writer.drain()
        except (ConnectionError, OSError) as exc:
            logger.debug("ident: connection to {} failed: {}", requester, exc)
        finally:
            writer.close()
            with contextlib.suppress(ConnectionError, OSError):
                await writer.wait_closed()
