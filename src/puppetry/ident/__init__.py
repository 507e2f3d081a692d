"""RFC 1413 ident server mapping puppet local ports to usernames."""

from puppetry.ident.protocol import (
    error_reply,
    ident_username,
    parse_request,
    userid_reply,
)
from puppetry.ident.server import IdentServer, PortmapEntry

__all__ = [
    "IdentServer",
    "PortmapEntry",
    "error_reply",
    "ident_username",
    "parse_request",
    "userid_reply",
]
