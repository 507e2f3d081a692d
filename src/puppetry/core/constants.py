"""Protocol constants."""

from __future__ import annotations

# RFC 1413 user-id convention: usernames are truncated to this many characters
IDENT_USERNAME_MAX = 9
IDENT_OPSYS = "LINUX,UTF-8"
IDENT_DEFAULT_PORT = 113

# Replaced by the target puppet's nick in SendRaw when interpolation is on
NICK_PLACEHOLDER = "${NICK}"

IRC_PLAIN_PORT = 6667
IRC_TLS_PORT = 6697

DEFAULT_PING_INTERVAL = 240
DEFAULT_RPC_PORT = 8420
