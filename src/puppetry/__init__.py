"""puppetry: per-identity IRC puppet connections with an RFC 1413 ident server."""

__version__ = "0.1.0"
