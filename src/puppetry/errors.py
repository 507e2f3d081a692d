"""Re-export from core.errors."""

from puppetry.core.errors import (
    IdentListenerError,
    IdentParseError,
    PortCollisionError,
    PuppetConnectionError,
    PuppetryConfigurationError,
    PuppetryError,
    RPCError,
)

__all__ = [
    "IdentListenerError",
    "IdentParseError",
    "PortCollisionError",
    "PuppetConnectionError",
    "PuppetryConfigurationError",
    "PuppetryError",
    "RPCError",
]
