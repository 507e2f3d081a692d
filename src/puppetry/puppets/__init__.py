"""Puppet connections and the manager that owns them."""

from puppetry.puppets.connection import PuppetConnection
from puppetry.puppets.manager import PuppetManager, split_server_address
from puppetry.puppets.params import (
    Connection,
    ConnectParams,
    InterpolationParams,
    NickParams,
    QuitParams,
    SendRawParams,
    SetupParams,
)

__all__ = [
    "ConnectParams",
    "Connection",
    "InterpolationParams",
    "NickParams",
    "PuppetConnection",
    "PuppetManager",
    "QuitParams",
    "SendRawParams",
    "SetupParams",
    "split_server_address",
]
