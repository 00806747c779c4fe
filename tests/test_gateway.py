"""Tests for the action gateway."""

import asyncio

import pytest

from wa_gateway.backends.base import SendResult
from wa_gateway.exceptions import (
    NotReadyError,
    UnauthorizedError,
    UpstreamFailure,
    UpstreamTimeout,
    ValidationError,
)
from wa_gateway.gateway import ActionGateway
from wa_gateway.models.events import (
    ClientAuthenticated,
    PairingArtifactIssued,
    TransportLost,
)
from wa_gateway.models.session import SessionState


async def make_ready(store) -> str:
    await store.apply_transition(PairingArtifactIssued(image="img1"))
    snapshot = await store.apply_transition(ClientAuthenticated())
    return snapshot.api_key


@pytest.fixture
def gateway(store, backend):
    return ActionGateway(store, backend)


@pytest.mark.asyncio
async def test_send_while_unpaired_is_not_ready(gateway, backend):
    with pytest.raises(NotReadyError) as exc_info:
        await gateway.send_message("abc", "15551234567", "hi")

    assert exc_info.value.code == "not_ready"
    backend.send_message.assert_not_called()


@pytest.mark.asyncio
async def test_not_ready_wins_over_correct_key(store, gateway, backend):
    api_key = await make_ready(store)
    await store.apply_transition(TransportLost())

    with pytest.raises(NotReadyError):
        await gateway.send_message(api_key, "15551234567", "hi")

    backend.send_message.assert_not_called()


@pytest.mark.asyncio
async def test_wrong_key_is_unauthorized(store, gateway, backend):
    await make_ready(store)

    with pytest.raises(UnauthorizedError) as exc_info:
        await gateway.send_message("wrong", "15551234567", "hi")

    assert exc_info.value.message == "Invalid API key"
    backend.send_message.assert_not_called()


@pytest.mark.asyncio
async def test_key_check_is_case_sensitive(store, gateway):
    api_key = await make_ready(store)

    with pytest.raises(UnauthorizedError):
        await gateway.send_message(api_key.upper(), "15551234567", "hi")


@pytest.mark.asyncio
async def test_unauthorized_message_same_without_minted_key(store, gateway):
    # READY with no key can only happen through a hand-built snapshot
    store._snapshot = store.get_snapshot().model_copy(
        update={"state": SessionState.READY, "connected": True}
    )

    with pytest.raises(UnauthorizedError) as no_key:
        await gateway.send_message("", "15551234567", "hi")

    await store.apply_transition(TransportLost())
    await store.apply_transition(ClientAuthenticated())
    with pytest.raises(UnauthorizedError) as wrong_key:
        await gateway.send_message("guess", "15551234567", "hi")

    assert no_key.value.message == wrong_key.value.message
    assert no_key.value.code == wrong_key.value.code


@pytest.mark.asyncio
async def test_empty_recipient_names_field(store, gateway):
    api_key = await make_ready(store)

    with pytest.raises(ValidationError) as exc_info:
        await gateway.send_message(api_key, "   ", "hi")

    assert exc_info.value.field == "phoneNumber"
    assert "phoneNumber" in exc_info.value.message


@pytest.mark.asyncio
async def test_empty_body_names_field(store, gateway):
    api_key = await make_ready(store)

    with pytest.raises(ValidationError) as exc_info:
        await gateway.send_message(api_key, "15551234567", "")

    assert exc_info.value.field == "message"


@pytest.mark.asyncio
async def test_send_forwards_and_returns_backend_result(store, gateway, backend):
    api_key = await make_ready(store)
    backend.send_message.return_value = SendResult(success=False, message="Number not on WhatsApp")

    result = await gateway.send_message(api_key, " 15551234567 ", "hi")

    backend.send_message.assert_awaited_once_with("15551234567", "hi")
    assert result == SendResult(success=False, message="Number not on WhatsApp")


@pytest.mark.asyncio
async def test_backend_exception_becomes_upstream_failure(store, gateway, backend):
    api_key = await make_ready(store)
    backend.send_message.side_effect = RuntimeError("browser crashed")

    with pytest.raises(UpstreamFailure) as exc_info:
        await gateway.send_message(api_key, "15551234567", "hi")

    assert exc_info.value.message == "browser crashed"
    assert backend.send_message.await_count == 1


@pytest.mark.asyncio
async def test_backend_timeout_propagates(store, gateway, backend):
    api_key = await make_ready(store)
    backend.send_message.side_effect = UpstreamTimeout()

    with pytest.raises(UpstreamTimeout) as exc_info:
        await gateway.send_message(api_key, "15551234567", "hi")

    assert exc_info.value.code == "upstream_timeout"


@pytest.mark.asyncio
async def test_disconnect_during_send_does_not_change_outcome(store, gateway, backend):
    api_key = await make_ready(store)

    async def slow_send(recipient, body):
        await store.apply_transition(TransportLost())
        return SendResult(success=True, message="Message sent successfully")

    backend.send_message.side_effect = slow_send

    result = await gateway.send_message(api_key, "15551234567", "hi")

    assert result.success is True
    assert store.get_snapshot().state == SessionState.DISCONNECTED


@pytest.mark.asyncio
async def test_logout_requires_ready(gateway, backend):
    with pytest.raises(NotReadyError):
        await gateway.logout()

    backend.logout.assert_not_called()


@pytest.mark.asyncio
async def test_logout_returns_to_unpaired_and_invalidates_key(store, gateway, backend):
    api_key = await make_ready(store)

    result = await gateway.logout()

    assert result.success is True
    snapshot = store.get_snapshot()
    assert snapshot.state == SessionState.UNPAIRED
    assert snapshot.api_key is None

    # re-pair: a new key is minted and the old one is rejected
    await store.apply_transition(PairingArtifactIssued(image="img2"))
    new_snapshot = await store.apply_transition(ClientAuthenticated())
    assert new_snapshot.api_key != api_key
    with pytest.raises(UnauthorizedError):
        await gateway.send_message(api_key, "15551234567", "hi")


@pytest.mark.asyncio
async def test_logout_invalidates_key_when_transport_drops_first(store, gateway, backend):
    """The bridge may report the disconnect before answering the logout call."""
    api_key = await make_ready(store)

    async def logout_dropping_transport():
        await store.apply_transition(TransportLost(reason="LOGOUT"))
        return SendResult(success=True, message="Logged out")

    backend.logout.side_effect = logout_dropping_transport

    result = await gateway.logout()

    assert result.success is True
    snapshot = store.get_snapshot()
    assert snapshot.state == SessionState.UNPAIRED
    assert snapshot.api_key is None

    await store.apply_transition(PairingArtifactIssued(image="img2"))
    reauthenticated = await store.apply_transition(ClientAuthenticated())
    assert reauthenticated.api_key != api_key
    with pytest.raises(UnauthorizedError):
        await gateway.send_message(api_key, "15551234567", "hi")


@pytest.mark.asyncio
async def test_logout_failure_leaves_state(store, gateway, backend):
    api_key = await make_ready(store)
    backend.logout.return_value = SendResult(success=False, message="Bridge refused logout")

    with pytest.raises(UpstreamFailure) as exc_info:
        await gateway.logout()

    assert exc_info.value.message == "Bridge refused logout"
    snapshot = store.get_snapshot()
    assert snapshot.state == SessionState.READY
    assert snapshot.api_key == api_key


@pytest.mark.asyncio
async def test_logout_with_key_requirement(store, backend):
    gateway = ActionGateway(store, backend, logout_requires_api_key=True)
    api_key = await make_ready(store)

    with pytest.raises(UnauthorizedError):
        await gateway.logout("wrong")
    backend.logout.assert_not_called()

    result = await gateway.logout(api_key)
    assert result.success is True


@pytest.mark.asyncio
async def test_concurrent_logouts_call_backend_once(store, gateway, backend):
    await make_ready(store)

    async def slow_logout():
        await asyncio.sleep(0.01)
        return SendResult(success=True, message="Logged out")

    backend.logout.side_effect = slow_logout

    results = await asyncio.gather(
        gateway.logout(), gateway.logout(), return_exceptions=True
    )

    assert backend.logout.await_count == 1
    assert sum(isinstance(r, SendResult) for r in results) == 1
    assert sum(isinstance(r, NotReadyError) for r in results) == 1
