"""JSON-RPC transport for the puppet manager."""

from puppetry.rpc.client import PuppetClient
from puppetry.rpc.server import RPCServer

__all__ = ["PuppetClient", "RPCServer"]
