"""WebSocket client for the Mapepire data server."""

__version__ = "0.1.0"

from .config import DEFAULT_PORT, MapepireSettings
from .errors import (
    ErrorKind,
    MapepireClientError,
    MapepireConnectionError,
    MapepireHandshakeError,
    MapepireMalformedResponse,
    MapepireNotConnected,
    MapepireTimeout,
)
from .protocol import (
    MapepireResponse,
    OperationKind,
    RequestEnvelope,
    build_command_request,
    build_connect_request,
    build_ping_request,
    build_query_request,
    encode_frame,
    parse_response,
)
from .session import MapepireSession
from .transport import MapepireWsClient, build_auth_header, build_connection_url

__all__ = [
    "DEFAULT_PORT",
    "ErrorKind",
    "MapepireClientError",
    "MapepireConnectionError",
    "MapepireHandshakeError",
    "MapepireMalformedResponse",
    "MapepireNotConnected",
    "MapepireResponse",
    "MapepireSession",
    "MapepireSettings",
    "MapepireTimeout",
    "MapepireWsClient",
    "OperationKind",
    "RequestEnvelope",
    "__version__",
    "build_auth_header",
    "build_command_request",
    "build_connect_request",
    "build_connection_url",
    "build_ping_request",
    "build_query_request",
    "encode_frame",
    "parse_response",
]
