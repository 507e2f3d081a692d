"""Config schema and accessor."""

from __future__ import annotations

import os
from typing import Any

from loguru import logger

from puppetry.core.constants import DEFAULT_PING_INTERVAL, DEFAULT_RPC_PORT, IDENT_DEFAULT_PORT
from puppetry.core.errors import PuppetryConfigurationError

# Env keys that override config (loaded once per reload)
_ENV_OVERRIDE_KEYS = (
    "PUPPETRY_IRC_TLS_VERIFY",
    "PUPPETRY_RPC_TOKEN",
)

_PORT_KEYS = ("ident_port", "rpc_port")


def _load_env_overrides() -> dict[str, str]:
    return {k: os.environ.get(k, "") for k in _ENV_OVERRIDE_KEYS}


def _parse_bool_env(val: str) -> bool | None:
    """Parse env string to bool; None if not a recognized bool."""
    v = val.lower()
    if v in ("1", "true", "yes"):
        return True
    if v in ("0", "false", "no"):
        return False
    return None


class Config:
    """Typed accessor over the loaded YAML data and env overrides."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data = data or {}
        self._env: dict[str, str] = _load_env_overrides()

    def reload(self, data: dict[str, Any], *, validate: bool = True) -> None:
        """Replace config data (e.g. on SIGHUP reload)."""
        self._data = data or {}
        self._env = _load_env_overrides()
        if validate:
            self._validate()
        logger.debug("Config reloaded: server={}", self.irc_server or "<unset>")

    def _validate(self) -> None:
        """Validate port values; raise PuppetryConfigurationError on failure."""
        for key in _PORT_KEYS:
            if key not in self._data:
                continue
            value = self._data[key]
            try:
                port = int(value)
            except (TypeError, ValueError) as exc:
                raise PuppetryConfigurationError(
                    f"{key} must be an integer",
                    code="invalid_port",
                    details={"key": key, "value": value},
                    original_error=exc,
                ) from exc
            if not 0 <= port <= 65535:
                raise PuppetryConfigurationError(
                    f"{key} out of range",
                    code="invalid_port",
                    details={"key": key, "value": port},
                )
        server = self._data.get("irc_server")
        if server is not None and not isinstance(server, str):
            raise PuppetryConfigurationError(
                "irc_server must be a string",
                code="invalid_server",
                details={"type": type(server).__name__},
            )

    @property
    def irc_server(self) -> str:
        """IRC server as host[:port]."""
        return str(self._data.get("irc_server", ""))

    @property
    def irc_use_tls(self) -> bool:
        return bool(self._data.get("irc_use_tls", True))

    @property
    def irc_tls_verify(self) -> bool:
        parsed = _parse_bool_env(self._env.get("PUPPETRY_IRC_TLS_VERIFY", ""))
        if parsed is not None:
            return parsed
        return bool(self._data.get("irc_tls_verify", True))

    @property
    def irc_server_password(self) -> str:
        return str(self._data.get("irc_server_password", ""))

    @property
    def irc_webirc_password(self) -> str:
        return str(self._data.get("irc_webirc_password", ""))

    @property
    def ident_port(self) -> int:
        return int(self._data.get("ident_port", IDENT_DEFAULT_PORT))

    @property
    def ident_lookup_timeout(self) -> float:
        """Seconds an ident query waits for its port to be bound."""
        return float(self._data.get("ident_lookup_timeout", 2.0))

    @property
    def rpc_host(self) -> str:
        return str(self._data.get("rpc_host", "127.0.0.1"))

    @property
    def rpc_port(self) -> int:
        return int(self._data.get("rpc_port", DEFAULT_RPC_PORT))

    @property
    def rpc_token(self) -> str | None:
        env_val = self._env.get("PUPPETRY_RPC_TOKEN", "")
        if env_val:
            return env_val
        val = self._data.get("rpc_token")
        if val and isinstance(val, str) and val.strip():
            return val.strip()
        return None

    @property
    def puppet_ping_interval(self) -> int:
        return int(self._data.get("puppet_ping_interval", DEFAULT_PING_INTERVAL))

    @property
    def connect_settle_timeout(self) -> float:
        """Seconds connect waits for a fresh socket's local port."""
        return float(self._data.get("connect_settle_timeout", 1.0))
