"""WebSocket client wrapper for the Mapepire data server."""

from __future__ import annotations

import asyncio
import logging
import ssl

from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..config import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_MAX_FRAME_SIZE,
    DEFAULT_PING_INTERVAL,
    DEFAULT_RECEIVE_TIMEOUT,
)
from ..errors import MapepireConnectionError, MapepireNotConnected, MapepireTimeout
from .ws import build_auth_header, connect_websocket

_LOGGER = logging.getLogger(__name__)

NORMAL_CLOSURE = 1000
CLOSE_REASON = "Done"


class MapepireWsClient:
    """One persistent WebSocket carrying request/response text frames."""

    def __init__(
        self,
        *,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        ping_interval: int | None = DEFAULT_PING_INTERVAL,
        max_frame_size: int = DEFAULT_MAX_FRAME_SIZE,
        ssl_context: ssl.SSLContext | None = None,
    ) -> None:
        self._ws: ClientConnection | None = None
        self._connect_timeout = connect_timeout
        self._ping_interval = ping_interval
        self._max_frame_size = max_frame_size
        self._ssl_context = ssl_context

    @property
    def is_open(self) -> bool:
        return self._ws is not None

    async def open(self, url: str, user: str, password: str) -> None:
        """Open the websocket and authenticate with HTTP Basic credentials.

        An already open socket is kept as is.
        """
        if self._ws is not None:
            _LOGGER.debug("[%s] WebSocket already open, reusing it", url)
            return
        self._ws = await connect_websocket(
            url,
            build_auth_header(user, password),
            ping_interval=self._ping_interval,
            timeout=self._connect_timeout,
            ssl_context=self._ssl_context if url.startswith("wss://") else None,
        )

    async def send_frame(self, text: str) -> None:
        """Send one complete text frame."""
        if self._ws is None:
            raise MapepireNotConnected("WebSocket is not connected")
        try:
            await self._ws.send(text)
        except ConnectionClosed as err:
            raise MapepireConnectionError(f"WebSocket closed by server: {err}") from err
        except (OSError, WebSocketException) as err:
            raise MapepireConnectionError(f"Failed to send frame: {err}") from err

    async def receive_frame(
        self, *, timeout: float | None = DEFAULT_RECEIVE_TIMEOUT
    ) -> str:
        """Wait for one complete frame and return its text.

        Args:
            timeout: Seconds to wait, or None to wait until the peer answers
                or closes

        Raises:
            MapepireNotConnected: If the socket is not open
            MapepireTimeout: If no frame arrived in time
            MapepireConnectionError: If the socket closed or failed
        """
        if self._ws is None:
            raise MapepireNotConnected("WebSocket is not connected")
        try:
            message = await asyncio.wait_for(self._ws.recv(), timeout=timeout)
        except TimeoutError as err:
            raise MapepireTimeout(
                f"No response from server within {timeout} seconds"
            ) from err
        except ConnectionClosed as err:
            raise MapepireConnectionError(f"WebSocket closed by server: {err}") from err
        except (OSError, WebSocketException) as err:
            raise MapepireConnectionError(f"Failed to receive frame: {err}") from err
        return self._normalize_frame(message, self._max_frame_size)

    async def close(self) -> None:
        """Send a normal-closure frame and release the socket."""
        if self._ws is None:
            raise MapepireNotConnected("WebSocket is not connected")
        ws, self._ws = self._ws, None
        try:
            await ws.close(code=NORMAL_CLOSURE, reason=CLOSE_REASON)
        except (OSError, WebSocketException) as err:
            self._abort_transport(ws)
            raise MapepireConnectionError(f"Failed to close WebSocket: {err}") from err
        except asyncio.CancelledError:
            self._abort_transport(ws)
            raise

    def abort(self) -> None:
        """Drop the socket without a closing handshake."""
        if self._ws is None:
            return
        ws, self._ws = self._ws, None
        self._abort_transport(ws)

    @staticmethod
    def _abort_transport(ws: ClientConnection) -> None:
        transport = getattr(ws, "transport", None)
        if transport is not None:
            transport.abort()

    @staticmethod
    def _normalize_frame(message: str | bytes, max_size: int) -> str:
        """Return frame text cut to at most ``max_size`` UTF-8 bytes."""
        data = message.encode() if isinstance(message, str) else message
        if len(data) > max_size:
            _LOGGER.warning(
                "Response frame of %d bytes truncated to %d bytes", len(data), max_size
            )
            data = data[:max_size]
        return data.decode("utf-8", errors="ignore")
