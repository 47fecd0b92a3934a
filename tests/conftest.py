"""Pytest configuration and fixtures for mapepire_client tests."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest


@pytest.fixture
def mock_connection() -> AsyncMock:
    """Create a mock websockets ClientConnection."""
    connection = AsyncMock()
    connection.transport = MagicMock()
    return connection


def create_mock_ws_client(frames: Iterable[Any] = ()) -> MagicMock:
    """Create a mock MapepireWsClient.

    Args:
        frames: Values returned (or exceptions raised) by successive
            receive_frame() calls

    Returns:
        Mock with async open/send_frame/receive_frame/close and sync abort
    """
    client = MagicMock()
    client.open = AsyncMock()
    client.send_frame = AsyncMock()
    client.receive_frame = AsyncMock(side_effect=list(frames))
    client.close = AsyncMock()
    client.abort = MagicMock()
    return client
