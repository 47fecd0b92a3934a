"""Connection defaults and environment-driven settings."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

DEFAULT_PORT = 8076
DEFAULT_CONNECT_TIMEOUT = 15.0
DEFAULT_RECEIVE_TIMEOUT = 30.0
DEFAULT_PING_INTERVAL = 20
DEFAULT_MAX_FRAME_SIZE = 1024 * 512

DEFAULT_QUERY_ID = "Q1"
DEFAULT_COMMAND_ID = "cmd1"
DEFAULT_PING_ID = "ping1"

ENV_PREFIX = "MAPEPIRE_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(name: str, value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


def _parse_timeout(name: str, value: str) -> float | None:
    normalized = value.strip().lower()
    if normalized in {"", "none"}:
        return None
    try:
        timeout = float(normalized)
    except ValueError as err:
        raise ValueError(f"{name} must be a number of seconds, got {value!r}") from err
    if timeout <= 0:
        raise ValueError(f"{name} must be positive, got {value!r}")
    return timeout


def _parse_positive_int(name: str, value: str) -> int:
    try:
        number = int(value.strip())
    except ValueError as err:
        raise ValueError(f"{name} must be an integer, got {value!r}") from err
    if number <= 0:
        raise ValueError(f"{name} must be positive, got {value!r}")
    return number


@dataclass(frozen=True, slots=True)
class MapepireSettings:
    """Everything needed to open a session against one Mapepire server."""

    host: str
    user: str
    password: str = field(repr=False)
    port: int = DEFAULT_PORT
    secure: bool = True
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    receive_timeout: float | None = DEFAULT_RECEIVE_TIMEOUT
    max_frame_size: int = DEFAULT_MAX_FRAME_SIZE

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        prefix: str = ENV_PREFIX,
    ) -> MapepireSettings:
        """Build settings from ``MAPEPIRE_*`` environment variables.

        Args:
            environ: Mapping to read from (default: ``os.environ``)
            prefix: Variable name prefix

        Raises:
            ValueError: If a required variable is missing or a value is invalid
        """
        env = os.environ if environ is None else environ

        def required(name: str) -> str:
            value = env.get(prefix + name)
            if not value:
                raise ValueError(f"{prefix}{name} is required")
            return value

        port_raw = env.get(prefix + "PORT")
        secure_raw = env.get(prefix + "SECURE")
        connect_raw = env.get(prefix + "CONNECT_TIMEOUT")
        receive_raw = env.get(prefix + "RECEIVE_TIMEOUT")
        frame_raw = env.get(prefix + "MAX_FRAME_SIZE")

        connect_timeout = DEFAULT_CONNECT_TIMEOUT
        if connect_raw is not None:
            parsed = _parse_timeout(prefix + "CONNECT_TIMEOUT", connect_raw)
            if parsed is None:
                raise ValueError(f"{prefix}CONNECT_TIMEOUT cannot be disabled")
            connect_timeout = parsed

        return cls(
            host=required("HOST"),
            user=required("USER"),
            password=required("PASSWORD"),
            port=(
                _parse_positive_int(prefix + "PORT", port_raw)
                if port_raw
                else DEFAULT_PORT
            ),
            secure=(
                _parse_bool(prefix + "SECURE", secure_raw) if secure_raw else True
            ),
            connect_timeout=connect_timeout,
            receive_timeout=(
                _parse_timeout(prefix + "RECEIVE_TIMEOUT", receive_raw)
                if receive_raw is not None
                else DEFAULT_RECEIVE_TIMEOUT
            ),
            max_frame_size=(
                _parse_positive_int(prefix + "MAX_FRAME_SIZE", frame_raw)
                if frame_raw
                else DEFAULT_MAX_FRAME_SIZE
            ),
        )
