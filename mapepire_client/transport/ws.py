"""WebSocket helpers for the Mapepire data server transport."""

from __future__ import annotations

import asyncio
import base64
import ssl
from typing import Any

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import (
    InvalidHandshake,
    InvalidURI,
    WebSocketException,
)

from ..config import DEFAULT_CONNECT_TIMEOUT, DEFAULT_PING_INTERVAL
from ..errors import (
    MapepireConnectionError,
    MapepireHandshakeError,
    MapepireTimeout,
)

DB_PATH = "/db"


def build_connection_url(host: str, port: int, *, secure: bool = True) -> str:
    """Build the ``wss://`` (or ``ws://``) URL of the database endpoint."""
    scheme = "wss" if secure else "ws"
    return f"{scheme}://{host}:{port}{DB_PATH}"


def build_auth_header(user: str, password: str) -> dict[str, str]:
    """Build the HTTP Basic authorization header sent with the handshake.

    Base64 is an encoding only. The credential is protected by TLS in secure
    mode and travels in the clear otherwise.
    """
    token = base64.b64encode(f"{user}:{password}".encode()).decode("ascii")
    return {"Authorization": f"Basic {token}"}


async def connect_websocket(
    url: str,
    headers: dict[str, str],
    *,
    ping_interval: int | None = DEFAULT_PING_INTERVAL,
    timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ssl_context: ssl.SSLContext | None = None,
) -> ClientConnection:
    """Open a WebSocket to the Mapepire server and authenticate.

    Uses the websockets library which properly implements RFC 6455 frame masking.
    Frame size is not limited here; the client truncates oversized frames itself.

    Args:
        url: ``ws://`` or ``wss://`` endpoint URL
        headers: Extra handshake headers (authorization)
        ping_interval: Interval for keepalive ping frames
        timeout: Connection timeout
        ssl_context: TLS context for ``wss`` URLs (default: system trust store)
    """
    kwargs: dict[str, Any] = {}
    if ssl_context is not None:
        kwargs["ssl"] = ssl_context
    try:
        return await asyncio.wait_for(
            websockets.connect(
                url,
                additional_headers=headers,
                ping_interval=ping_interval,
                close_timeout=5,
                max_size=None,
                **kwargs,
            ),
            timeout=timeout,
        )
    except TimeoutError as err:
        raise MapepireTimeout("WebSocket connection timed out") from err
    except (InvalidHandshake, InvalidURI, ValueError) as err:
        raise MapepireHandshakeError(f"WebSocket handshake failed: {err}") from err
    except (OSError, WebSocketException) as err:
        raise MapepireConnectionError(f"WebSocket connection failed: {err}") from err
