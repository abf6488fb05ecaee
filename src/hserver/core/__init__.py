"""
Transport: asyncio listener, per-connection request reader and the raw
server response writer.
"""

from .connection import Connection, ConnectionState
from .server import SocketServer
from .transport import ServerResponse

__all__ = [
    "Connection",
    "ConnectionState",
    "SocketServer",
    "ServerResponse",
]
