"""RFC 1413 request parsing and reply formatting."""

from __future__ import annotations

import re

from puppetry.core.constants import IDENT_OPSYS, IDENT_USERNAME_MAX
from puppetry.core.errors import IdentParseError

_PORT_TOKEN = re.compile(rb"\d+")


def ident_username(uid: str) -> str:
    """Username reported for a uid: at most IDENT_USERNAME_MAX characters."""
    return uid[:IDENT_USERNAME_MAX]


def parse_request(line: bytes) -> tuple[int, int]:
    """Extract (local_port, remote_port) from a request line.

    Tokens may appear anywhere in the line; anything other than exactly two
    decimal tokens is rejected.
    """
    tokens = _PORT_TOKEN.findall(line)
    if len(tokens) != 2:
        raise IdentParseError(
            "expected two port numbers",
            code="bad_request",
            details={"request": line, "tokens": len(tokens)},
        )
    return int(tokens[0]), int(tokens[1])


def valid_port(port: int) -> bool:
    return 0 < port <= 65535


def userid_reply(local_port: int, remote_port: int, username: str) -> bytes:
    return f"{local_port}, {remote_port} : USERID : {IDENT_OPSYS} : {username}\r\n".encode()


def error_reply(local_port: int, remote_port: int, error: str = "NO-USER") -> bytes:
    return f"{local_port}, {remote_port} : ERROR : {error}\r\n".encode()
