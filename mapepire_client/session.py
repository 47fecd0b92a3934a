"""High-level session for Mapepire data server communication.

This module provides the API an embedding application uses to talk to a
Mapepire server. It handles:
- Connection management and authentication
- The connected/disconnected state machine
- Serializing request/response exchanges over the single socket
- Caching the last result of each operation kind

No exception crosses this API: every operation returns a bool and records
its outcome in ``last_error`` and ``last_error_kind``.
"""

from __future__ import annotations

import asyncio
import logging
import ssl
from collections.abc import Callable
from types import TracebackType

from .config import (
    DEFAULT_COMMAND_ID,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_MAX_FRAME_SIZE,
    DEFAULT_PING_ID,
    DEFAULT_PING_INTERVAL,
    DEFAULT_PORT,
    DEFAULT_QUERY_ID,
    DEFAULT_RECEIVE_TIMEOUT,
    MapepireSettings,
)
from .errors import (
    ErrorKind,
    MapepireClientError,
    MapepireMalformedResponse,
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
from .transport.ws import build_connection_url
from .transport.ws_client import MapepireWsClient

_LOGGER = logging.getLogger(__name__)

NOT_CONNECTED_MSG = "Not connected to mapepire server."
ALREADY_CONNECTED_MSG = (
    "Already connected to mapepire server. "
    "Existing connection will be used unless you Disconnect first."
)
CANCELLED_MSG = "Operation cancelled"
SERVER_FAILURE_MSG = "Server reported failure"

STATE_DISCONNECTED = "disconnected"
STATE_CONNECTED = "connected"


class MapepireSession:
    """Client session for one Mapepire server connection.

    Usage:
        session = MapepireSession()
        if await session.connect("ibmi.example.com", "user", "secret"):
            if await session.run_query("SELECT * FROM QIWS.QCUSTCDT"):
                print(session.query_results)
            await session.disconnect()
        else:
            print(session.last_error)
    """

    def __init__(
        self,
        *,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        receive_timeout: float | None = DEFAULT_RECEIVE_TIMEOUT,
        max_frame_size: int = DEFAULT_MAX_FRAME_SIZE,
        ping_interval: int | None = DEFAULT_PING_INTERVAL,
        ssl_context: ssl.SSLContext | None = None,
    ) -> None:
        """Initialize session.

        Args:
            connect_timeout: Handshake timeout (seconds)
            receive_timeout: Time to wait for each response (seconds),
                None waits indefinitely
            max_frame_size: Response frames are cut to this many bytes
            ping_interval: WebSocket keepalive interval (seconds), None disables
            ssl_context: TLS context used for secure connections
        """
        self._connect_timeout = connect_timeout
        self._receive_timeout = receive_timeout
        self._max_frame_size = max_frame_size
        self._ping_interval = ping_interval
        self._ssl_context = ssl_context

        # Connection state
        self._ws: MapepireWsClient | None = None
        self._connection_state: str = STATE_DISCONNECTED
        self._connection_url = ""
        self._lock = asyncio.Lock()

        # Last outcome
        self._last_error = ""
        self._last_error_kind = ErrorKind.NONE
        self._results: dict[OperationKind, MapepireResponse] = {}

        self._connection_state_callback: Callable[[str], None] | None = None

    @classmethod
    def from_settings(
        cls,
        settings: MapepireSettings,
        *,
        ping_interval: int | None = DEFAULT_PING_INTERVAL,
        ssl_context: ssl.SSLContext | None = None,
    ) -> MapepireSession:
        """Create a session using the timeouts and limits of ``settings``."""
        return cls(
            connect_timeout=settings.connect_timeout,
            receive_timeout=settings.receive_timeout,
            max_frame_size=settings.max_frame_size,
            ping_interval=ping_interval,
            ssl_context=ssl_context,
        )

    async def __aenter__(self) -> MapepireSession:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self.is_connected:
            await self.disconnect()

    # -------------------------------------------------------------------------
    # Public API: Connection Management
    # -------------------------------------------------------------------------

    async def connect(
        self,
        host: str,
        user: str,
        password: str,
        port: int = DEFAULT_PORT,
        secure: bool = True,
    ) -> bool:
        """Connect to the server and authorize.

        Args:
            host: Server host
            user: Server user
            password: Server password
            port: Server port
            secure: Use ``wss://`` when True, ``ws://`` otherwise

        Returns:
            True if connected (or already connected), False otherwise.
            Check ``last_error`` for the reason.
        """
        async with self._lock:
            self._clear_error()

            if self.is_connected:
                _LOGGER.warning("[%s] %s", self._connection_url, ALREADY_CONNECTED_MSG)
                self._record_error(ErrorKind.ALREADY_CONNECTED, ALREADY_CONNECTED_MSG)
                return True

            self._results.clear()
            self._connection_url = build_connection_url(host, port, secure=secure)
            _LOGGER.info("[%s] Connecting as %s", self._connection_url, user)

            ws = MapepireWsClient(
                connect_timeout=self._connect_timeout,
                ping_interval=self._ping_interval,
                max_frame_size=self._max_frame_size,
                ssl_context=self._ssl_context,
            )
            try:
                await ws.open(self._connection_url, user, password)
                response = await self._exchange(ws, build_connect_request())
            except MapepireMalformedResponse as err:
                self._results[OperationKind.CONNECT] = self._failed_response(
                    OperationKind.CONNECT, err.raw
                )
                _LOGGER.warning(
                    "[%s] Bad connect response: %s", self._connection_url, err
                )
                self._record_error(err.kind, str(err))
                await self._discard(ws)
                return False
            except MapepireClientError as err:
                _LOGGER.warning("[%s] Connection failed: %s", self._connection_url, err)
                ws.abort()
                self._record_error(err.kind, str(err))
                return False
            except asyncio.CancelledError:
                ws.abort()
                self._record_error(ErrorKind.CANCELLED, CANCELLED_MSG)
                raise

            self._results[OperationKind.CONNECT] = response
            if not response.success:
                message = response.error or SERVER_FAILURE_MSG
                _LOGGER.error(
                    "[%s] Server rejected connect: %s", self._connection_url, message
                )
                self._record_error(ErrorKind.SERVER_REPORTED_FAILURE, message)
                await self._discard(ws)
                return False

            self._ws = ws
            self._set_state(STATE_CONNECTED)
            _LOGGER.info("[%s] Connected", self._connection_url)
            return True

    async def connect_with(self, settings: MapepireSettings) -> bool:
        """Connect using the target and credential of ``settings``."""
        return await self.connect(
            settings.host,
            settings.user,
            settings.password,
            port=settings.port,
            secure=settings.secure,
        )

    async def disconnect(self) -> bool:
        """Close the connection and clear all cached results.

        Returns:
            True if a normal closure was sent, False otherwise
        """
        async with self._lock:
            self._clear_error()

            if not self.is_connected or self._ws is None:
                self._record_error(ErrorKind.NOT_CONNECTED, NOT_CONNECTED_MSG)
                return False

            _LOGGER.info("[%s] Disconnecting", self._connection_url)
            ws, self._ws = self._ws, None
            try:
                await ws.close()
            except MapepireClientError as err:
                _LOGGER.warning("[%s] Close failed: %s", self._connection_url, err)
                ws.abort()
                self._record_error(err.kind, str(err))
                return False
            except asyncio.CancelledError:
                ws.abort()
                self._record_error(ErrorKind.CANCELLED, CANCELLED_MSG)
                raise
            finally:
                self._results.clear()
                self._set_state(STATE_DISCONNECTED)
            return True

    # -------------------------------------------------------------------------
    # Public API: Operations
    # -------------------------------------------------------------------------

    async def run_query(self, sql: str, request_id: str = DEFAULT_QUERY_ID) -> bool:
        """Run an SQL statement. Results are in ``query_results``.

        Returns:
            True if the server reported success, False otherwise
        """
        return await self._run(build_query_request(sql, request_id))

    async def run_command(self, cmd: str, request_id: str = DEFAULT_COMMAND_ID) -> bool:
        """Run a CL command. Results are in ``cl_results``.

        Returns:
            True if the server reported success, False otherwise
        """
        return await self._run(build_command_request(cmd, request_id))

    async def ping(self, request_id: str = DEFAULT_PING_ID) -> bool:
        """Probe server and database liveness over the open connection.

        Returns:
            True if the server reported success. ``ping_alive`` and
            ``ping_db_alive`` are set independently of the return value.
        """
        return await self._run(build_ping_request(request_id))

    # -------------------------------------------------------------------------
    # Public API: Callbacks
    # -------------------------------------------------------------------------

    def on_connection_state_changed(self, callback: Callable[[str], None]) -> None:
        """Register callback for connection state changes.

        Callback receives state: "connected", "disconnected"
        """
        self._connection_state_callback = callback

    # -------------------------------------------------------------------------
    # Public API: Accessors
    # -------------------------------------------------------------------------

    @property
    def connection_url(self) -> str:
        """URL of the current or most recent connection."""
        return self._connection_url

    @property
    def connection_state(self) -> str:
        return self._connection_state

    @property
    def is_connected(self) -> bool:
        return self._connection_state == STATE_CONNECTED

    @property
    def last_error(self) -> str:
        """Error message of the most recent operation, empty on success."""
        return self._last_error

    @property
    def last_error_kind(self) -> ErrorKind:
        return self._last_error_kind

    def last_response(self, kind: OperationKind) -> MapepireResponse | None:
        """Return the cached response for an operation kind, if any."""
        return self._results.get(kind)

    @property
    def connect_results(self) -> str:
        return self._raw(OperationKind.CONNECT)

    @property
    def query_results(self) -> str:
        return self._raw(OperationKind.SQL)

    @property
    def query_success(self) -> bool:
        return self._success(OperationKind.SQL)

    @property
    def cl_results(self) -> str:
        return self._raw(OperationKind.CL)

    @property
    def cl_success(self) -> bool:
        return self._success(OperationKind.CL)

    @property
    def ping_results(self) -> str:
        return self._raw(OperationKind.PING)

    @property
    def ping_success(self) -> bool:
        return self._success(OperationKind.PING)

    @property
    def ping_alive(self) -> bool:
        response = self._results.get(OperationKind.PING)
        return response is not None and response.alive

    @property
    def ping_db_alive(self) -> bool:
        response = self._results.get(OperationKind.PING)
        return response is not None and response.db_alive

    # -------------------------------------------------------------------------
    # Internal: Request/Response Exchange
    # -------------------------------------------------------------------------

    async def _run(self, request: RequestEnvelope) -> bool:
        """Send one request on the open connection and cache its response."""
        async with self._lock:
            self._clear_error()
            self._results.pop(request.kind, None)

            if not self.is_connected or self._ws is None:
                self._record_error(ErrorKind.NOT_CONNECTED, NOT_CONNECTED_MSG)
                return False

            try:
                response = await self._exchange(self._ws, request)
            except MapepireMalformedResponse as err:
                _LOGGER.warning(
                    "[%s] Bad %s response: %s",
                    self._connection_url,
                    request.kind.value,
                    err,
                )
                self._results[request.kind] = self._failed_response(
                    request.kind, err.raw
                )
                self._record_error(err.kind, str(err))
                return False
            except MapepireClientError as err:
                _LOGGER.warning(
                    "[%s] %s request failed: %s",
                    self._connection_url,
                    request.kind.value,
                    err,
                )
                self._drop_connection()
                self._record_error(err.kind, str(err))
                return False
            except asyncio.CancelledError:
                _LOGGER.debug(
                    "[%s] %s request cancelled",
                    self._connection_url,
                    request.kind.value,
                )
                self._drop_connection()
                self._record_error(ErrorKind.CANCELLED, CANCELLED_MSG)
                raise

            self._results[request.kind] = response
            if not response.success:
                self._record_error(
                    ErrorKind.SERVER_REPORTED_FAILURE,
                    response.error or SERVER_FAILURE_MSG,
                )
            return response.success

    async def _exchange(
        self, ws: MapepireWsClient, request: RequestEnvelope
    ) -> MapepireResponse:
        """Send a request frame and decode the frame that answers it."""
        _LOGGER.debug(
            "[%s] Sending %s request %s",
            self._connection_url,
            request.kind.value,
            request.id,
        )
        await ws.send_frame(encode_frame(request))
        raw = await ws.receive_frame(timeout=self._receive_timeout)
        _LOGGER.debug(
            "[%s] Received %d chars for %s", self._connection_url, len(raw), request.id
        )

        response = parse_response(raw, request.kind)
        if response.id is not None and response.id != request.id:
            raise MapepireMalformedResponse(
                f"Response id {response.id!r} does not match request id {request.id!r}",
                raw,
            )
        return response

    # -------------------------------------------------------------------------
    # Internal: State
    # -------------------------------------------------------------------------

    def _set_state(self, state: str) -> None:
        """Update connection state and notify callback."""
        if self._connection_state != state:
            _LOGGER.debug(
                "[%s] State: %s → %s",
                self._connection_url,
                self._connection_state,
                state,
            )
            self._connection_state = state
            if self._connection_state_callback:
                try:
                    self._connection_state_callback(state)
                except Exception as err:
                    _LOGGER.exception(
                        "[%s] Connection state callback error: %s",
                        self._connection_url,
                        err,
                    )

    def _drop_connection(self) -> None:
        """Tear the socket down after a transport failure or cancellation."""
        if self._ws is not None:
            self._ws.abort()
            self._ws = None
        self._results.clear()
        self._set_state(STATE_DISCONNECTED)

    async def _discard(self, ws: MapepireWsClient) -> None:
        """Close a socket that never became the session's connection."""
        try:
            await ws.close()
        except MapepireClientError as err:
            _LOGGER.debug(
                "[%s] Close after failed connect: %s", self._connection_url, err
            )
            ws.abort()

    def _clear_error(self) -> None:
        self._last_error = ""
        self._last_error_kind = ErrorKind.NONE

    def _record_error(self, kind: ErrorKind, message: str) -> None:
        self._last_error = message
        self._last_error_kind = kind

    def _raw(self, kind: OperationKind) -> str:
        response = self._results.get(kind)
        return response.raw if response is not None else ""

    def _success(self, kind: OperationKind) -> bool:
        response = self._results.get(kind)
        return response is not None and response.success

    @staticmethod
    def _failed_response(kind: OperationKind, raw: str) -> MapepireResponse:
        return MapepireResponse(kind=kind, raw=raw, success=False)
