"""Protocol helpers for Mapepire request/response frames.

Requests are single-line JSON objects terminated by a newline. Responses are
JSON objects carrying at least a boolean ``success`` field; ping responses
also carry ``alive`` and ``db_alive``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .config import DEFAULT_COMMAND_ID, DEFAULT_PING_ID, DEFAULT_QUERY_ID
from .errors import MapepireMalformedResponse

CONNECT_REQUEST_ID = "connecting"
CONNECT_TECHNIQUE = "tcp"


class OperationKind(Enum):
    """Request types understood by the server."""

    CONNECT = "connect"
    SQL = "sql"
    CL = "cl"
    PING = "ping"


@dataclass(frozen=True, slots=True)
class RequestEnvelope:
    """One outgoing request."""

    id: str
    kind: OperationKind
    payload: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "type": self.kind.value, **self.payload}


@dataclass(frozen=True, slots=True)
class MapepireResponse:
    """Decoded response frame for one request."""

    kind: OperationKind
    raw: str
    success: bool
    id: str | None = None
    error: str | None = None
    alive: bool = False
    db_alive: bool = False
    data: dict[str, Any] = field(default_factory=dict, repr=False)


def build_connect_request() -> RequestEnvelope:
    """Build the fixed request sent right after the socket handshake."""
    return RequestEnvelope(
        id=CONNECT_REQUEST_ID,
        kind=OperationKind.CONNECT,
        payload={"technique": CONNECT_TECHNIQUE},
    )


def build_query_request(
    sql: str, request_id: str = DEFAULT_QUERY_ID
) -> RequestEnvelope:
    """Build an ``sql`` request for one statement."""
    return RequestEnvelope(id=request_id, kind=OperationKind.SQL, payload={"sql": sql})


def build_command_request(
    cmd: str, request_id: str = DEFAULT_COMMAND_ID
) -> RequestEnvelope:
    """Build a ``cl`` request for one command-language command."""
    return RequestEnvelope(id=request_id, kind=OperationKind.CL, payload={"cmd": cmd})


def build_ping_request(request_id: str = DEFAULT_PING_ID) -> RequestEnvelope:
    """Build a ``ping`` request. Pings carry no payload."""
    return RequestEnvelope(id=request_id, kind=OperationKind.PING)


def encode_frame(request: RequestEnvelope) -> str:
    """Serialize a request into one newline-terminated text frame.

    Caller text goes through the JSON encoder, so quotes, backslashes and
    control characters inside SQL or commands are escaped.
    """
    text = json.dumps(request.to_dict(), separators=(",", ":"), ensure_ascii=False)
    return text + "\n"


def parse_response(raw: str, kind: OperationKind) -> MapepireResponse:
    """Decode a response frame for a request of the given kind.

    Args:
        raw: Frame text as received.
        kind: Kind of the request this frame answers.

    Returns:
        Structured response. ``success`` mirrors the server flag; for ping
        responses ``alive`` and ``db_alive`` are read independently of it.

    Raises:
        MapepireMalformedResponse: If the frame is not a JSON object or its
            ``success`` field is missing or not a boolean.
    """
    try:
        data = json.loads(raw)
    except (ValueError, RecursionError) as err:
        raise MapepireMalformedResponse(
            f"Response is not valid JSON: {err}", raw
        ) from err

    if not isinstance(data, dict):
        raise MapepireMalformedResponse("Response is not a JSON object", raw)

    success = data.get("success")
    if not isinstance(success, bool):
        raise MapepireMalformedResponse(
            "Response has no boolean 'success' field", raw
        )

    response_id = data.get("id")
    error = data.get("error")
    is_ping = kind is OperationKind.PING

    return MapepireResponse(
        kind=kind,
        raw=raw,
        success=success,
        id=response_id if isinstance(response_id, str) else None,
        error=str(error) if error is not None else None,
        alive=is_ping and data.get("alive") is True,
        db_alive=is_ping and data.get("db_alive") is True,
        data=data,
    )
