"""Transport layer for the Mapepire client.

Components:
- ws: URL and auth header construction, WebSocket handshake
- ws_client: persistent socket with single-frame send and receive
"""

from .ws import build_auth_header, build_connection_url, connect_websocket
from .ws_client import MapepireWsClient

__all__ = [
    "MapepireWsClient",
    "build_auth_header",
    "build_connection_url",
    "connect_websocket",
]
