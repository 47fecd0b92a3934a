"""Client error types for Mapepire data server interactions."""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    """Outcome category recorded by the session after every operation."""

    NONE = "none"
    ALREADY_CONNECTED = "already_connected"
    NOT_CONNECTED = "not_connected"
    TRANSPORT_FAILURE = "transport_failure"
    TIMEOUT = "timeout"
    SERVER_REPORTED_FAILURE = "server_reported_failure"
    MALFORMED_RESPONSE = "malformed_response"
    CANCELLED = "cancelled"


class MapepireClientError(Exception):
    """Base error for Mapepire client failures."""

    kind: ErrorKind = ErrorKind.TRANSPORT_FAILURE


class MapepireTimeout(MapepireClientError):
    """Timeout while communicating with the server."""

    kind = ErrorKind.TIMEOUT


class MapepireConnectionError(MapepireClientError):
    """Network connection to the server failed."""


class MapepireHandshakeError(MapepireClientError):
    """WebSocket handshake failed."""


class MapepireNotConnected(MapepireClientError):
    """Operation attempted without an open connection."""

    kind = ErrorKind.NOT_CONNECTED


class MapepireMalformedResponse(MapepireClientError):
    """Response frame is not a JSON object with a boolean success field."""

    kind = ErrorKind.MALFORMED_RESPONSE

    def __init__(self, message: str, raw: str) -> None:
        super().__init__(message)
        self.raw = raw
