"""Tests for the server-side API key reveal gate."""

import pytest

from wa_gateway.exceptions import NotReadyError, RevealDisabledError, UnauthorizedError
from wa_gateway.models.events import ClientAuthenticated, PairingArtifactIssued
from wa_gateway.reveal import RevealGate


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gate(store, clock):
    return RevealGate(store, pin="4321", token_ttl_seconds=60, clock=clock)


async def make_ready(store):
    await store.apply_transition(PairingArtifactIssued(image="img1"))
    return (await store.apply_transition(ClientAuthenticated())).api_key


def test_disabled_without_pin(store):
    gate = RevealGate(store)

    assert gate.enabled is False
    with pytest.raises(RevealDisabledError):
        gate.issue_token("1234")
    with pytest.raises(RevealDisabledError):
        gate.reveal("anything")


def test_wrong_pin_rejected(gate):
    with pytest.raises(UnauthorizedError) as exc_info:
        gate.issue_token("0000")

    assert exc_info.value.message == "Invalid PIN"


@pytest.mark.asyncio
async def test_token_reveals_key_once(store, gate):
    api_key = await make_ready(store)
    token = gate.issue_token("4321")

    assert gate.reveal(token) == api_key
    with pytest.raises(UnauthorizedError):
        gate.reveal(token)


@pytest.mark.asyncio
async def test_expired_token_rejected(store, gate, clock):
    await make_ready(store)
    token = gate.issue_token("4321")

    clock.now += 61

    with pytest.raises(UnauthorizedError) as exc_info:
        gate.reveal(token)
    assert exc_info.value.message == "Invalid or expired reveal token"


def test_no_key_yet(gate):
    token = gate.issue_token("4321")

    with pytest.raises(NotReadyError):
        gate.reveal(token)


def test_expired_tokens_are_purged(gate, clock):
    gate.issue_token("4321")
    clock.now += 120
    gate.issue_token("4321")

    assert len(gate._tokens) == 1
