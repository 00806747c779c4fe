"""Shared fixtures for WA Gateway tests."""

import itertools
from unittest.mock import AsyncMock, MagicMock, Mock

import pytest
from fastapi import WebSocket

from wa_gateway.backends.base import MessagingBackend, SendResult
from wa_gateway.session_store import SessionStore


@pytest.fixture
def key_factory():
    """Deterministic key factory: key-1, key-2, ... padded to length."""
    counter = itertools.count(1)

    def factory(length: int) -> str:
        return f"key-{next(counter)}".ljust(length, "x")

    return factory


@pytest.fixture
def store(key_factory):
    """Fresh session store with predictable keys."""
    return SessionStore(api_key_length=16, key_factory=key_factory)


@pytest.fixture
def backend():
    """Messaging backend double that accepts everything."""
    mock_backend = MagicMock(spec=MessagingBackend)
    mock_backend.start = AsyncMock()
    mock_backend.shutdown = AsyncMock()
    mock_backend.send_message = AsyncMock(
        return_value=SendResult(success=True, message="Message sent successfully")
    )
    mock_backend.logout = AsyncMock(
        return_value=SendResult(success=True, message="Logged out")
    )
    return mock_backend


@pytest.fixture
def make_websocket():
    """Factory for WebSocket doubles."""

    def factory(origin: str = "http://localhost:3000"):
        websocket = Mock(spec=WebSocket)
        websocket.headers = {"origin": origin}
        websocket.accept = AsyncMock()
        websocket.send_json = AsyncMock()
        websocket.close = AsyncMock()
        return websocket

    return factory
