"""Puppetry domain exceptions."""

from __future__ import annotations


class PuppetryError(Exception):
    """Base for puppetry domain errors."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, object] | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}
        self.original_error = original_error


class PuppetryConfigurationError(PuppetryError):
    """Config validation or load failure, or use before setup."""


class PuppetConnectionError(PuppetryError):
    """Puppet handshake, auth or bind failure during connect."""


class PortCollisionError(PuppetryError):
    """Two identities resolved to the same local port."""


class IdentParseError(PuppetryError):
    """Ident request line did not carry exactly two port numbers."""


class IdentListenerError(PuppetryError):
    """Ident listening socket could not be opened."""


class RPCError(PuppetryError):
    """JSON-RPC call returned an error object."""
