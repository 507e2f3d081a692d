"""Puppet manager request types and the connection contract."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from puppetry.ident import IdentServer

EventHandler = Callable[[Any], "Awaitable[None] | None"]


class Connection(Protocol):
    """Outbound IRC connection driven by the puppet manager."""

    @property
    def nickname(self) -> str: ...

    @property
    def connected(self) -> bool: ...

    @property
    def local_port(self) -> int | None: ...

    async def open(
        self,
        hostname: str,
        port: int,
        *,
        tls: bool,
        tls_verify: bool,
        password: str | None,
    ) -> None: ...

    def start_loop(self) -> None: ...

    async def send_raw(self, line: str) -> None: ...

    async def set_nick(self, nick: str) -> None: ...

    async def join(self, channel: str) -> None: ...

    async def quit(self, message: str | None = None) -> None: ...

    def add_callback(self, code: str, handler: EventHandler) -> None: ...


@dataclass
class SetupParams:
    """Connection settings shared by every puppet."""

    server: str = ""  # host[:port]
    use_tls: bool = True
    insecure_skip_verify: bool = False
    server_password: str = ""
    webirc_password: str = ""
    ident_server: IdentServer | None = field(default=None, repr=False, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "server": self.server,
            "use_tls": self.use_tls,
            "insecure_skip_verify": self.insecure_skip_verify,
            "server_password": self.server_password,
            "webirc_password": self.webirc_password,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SetupParams:
        return cls(
            server=str(data.get("server", "")),
            use_tls=bool(data.get("use_tls", True)),
            insecure_skip_verify=bool(data.get("insecure_skip_verify", False)),
            server_password=str(data.get("server_password", "")),
            webirc_password=str(data.get("webirc_password", "")),
        )


@dataclass
class ConnectParams:
    """One puppet to connect. Callbacks only work for in-process callers."""

    uid: str
    nick: str
    username: str = ""
    realname: str = ""
    webirc_suffix: str = ""
    callbacks: dict[str, EventHandler] = field(default_factory=dict, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "uid": self.uid,
            "nick": self.nick,
            "username": self.username,
            "realname": self.realname,
            "webirc_suffix": self.webirc_suffix,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConnectParams:
        return cls(
            uid=str(data["uid"]),
            nick=str(data["nick"]),
            username=str(data.get("username", "")),
            realname=str(data.get("realname", "")),
            webirc_suffix=str(data.get("webirc_suffix", "")),
        )


@dataclass
class QuitParams:
    uid: str
    quit_message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"uid": self.uid, "quit_message": self.quit_message}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QuitParams:
        return cls(uid=str(data["uid"]), quit_message=str(data.get("quit_message", "")))


@dataclass
class NickParams:
    uid: str
    nick: str

    def to_dict(self) -> dict[str, Any]:
        return {"uid": self.uid, "nick": self.nick}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NickParams:
        return cls(uid=str(data["uid"]), nick=str(data["nick"]))


@dataclass
class InterpolationParams:
    nick: bool = False  # replace ${NICK} with each target's nick


@dataclass
class SendRawParams:
    """Raw lines for one puppet, or every puppet when uid is empty."""

    uid: str = ""
    messages: list[str] = field(default_factory=list)
    interpolation: InterpolationParams = field(default_factory=InterpolationParams)

    def to_dict(self) -> dict[str, Any]:
        return {
            "uid": self.uid,
            "messages": list(self.messages),
            "interpolation": {"nick": self.interpolation.nick},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SendRawParams:
        messages = data.get("messages") or []
        if not isinstance(messages, list):
            raise ValueError("messages must be a list")
        interpolation = data.get("interpolation") or {}
        return cls(
            uid=str(data.get("uid", "")),
            messages=[str(m) for m in messages],
            interpolation=InterpolationParams(nick=bool(interpolation.get("nick", False))),
        )
