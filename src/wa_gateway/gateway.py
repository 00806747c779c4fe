"""Authorization and execution of mutating actions."""

import asyncio
import logging
import secrets
from typing import Optional

from .backends.base import MessagingBackend, SendResult
from .exceptions import (
    NotReadyError,
    UnauthorizedError,
    UpstreamFailure,
    ValidationError,
)
from .models.events import LoggedOut
from .models.session import SessionSnapshot
from .reveal import RevealGate
from .session_store import SessionStore

logger = logging.getLogger(__name__)


class ActionGateway:
    """
    Gates send-message and logout on readiness and the API key.

    Every check runs against one snapshot read at the start of the call,
    so a transition landing mid-validation cannot split the checks.
    The gateway never writes the snapshot directly; logout goes through
    the store like any other transition.
    """

    def __init__(
        self,
        store: SessionStore,
        backend: MessagingBackend,
        reveal_gate: Optional[RevealGate] = None,
        logout_requires_api_key: bool = False,
    ):
        self.store = store
        self.backend = backend
        self.reveal_gate = reveal_gate or RevealGate(store)
        self.logout_requires_api_key = logout_requires_api_key
        self._logout_lock = asyncio.Lock()

    async def send_message(
        self, supplied_key: Optional[str], recipient: str, body: str
    ) -> SendResult:
        """
        Forward one message to the messaging backend.

        Args:
            supplied_key: API key presented by the caller
            recipient: Phone number with country code
            body: Message text

        Returns:
            The backend's result, unmodified

        Raises:
            NotReadyError: Session is not READY
            UnauthorizedError: Key does not match
            ValidationError: Empty recipient or body
            UpstreamFailure: Backend unreachable, failed or timed out
        """
        snapshot = self.store.get_snapshot()
        self._require_ready(snapshot)
        self._require_key(snapshot, supplied_key)

        recipient = (recipient or "").strip()
        body = body or ""
        if not recipient:
            raise ValidationError("phoneNumber")
        if not body.strip():
            raise ValidationError("message")

        logger.info(f"Forwarding message to {recipient} ({len(body)} chars)")
        result = await self._call_backend("send", self.backend.send_message(recipient, body))
        if result.success:
            logger.info(f"Message to {recipient} accepted by backend")
        else:
            logger.warning(f"Backend rejected message to {recipient}: {result.message}")
        return result

    async def logout(self, supplied_key: Optional[str] = None) -> SendResult:
        """
        Terminate the paired session and invalidate the API key.

        Raises:
            NotReadyError: Session is not READY
            UnauthorizedError: Key required by configuration and does not match
            UpstreamFailure: Backend failed; session left unchanged
        """
        async with self._logout_lock:
            snapshot = self.store.get_snapshot()
            self._require_ready(snapshot)
            if self.logout_requires_api_key:
                self._require_key(snapshot, supplied_key)

            logger.info("Requesting logout from messaging backend")
            result = await self._call_backend("logout", self.backend.logout())
            if not result.success:
                raise UpstreamFailure(result.message or "Logout failed")

            snapshot = await self.store.apply_transition(LoggedOut())
            logger.info(f"Logged out; session is {snapshot.state.value} without a key")
            return SendResult(success=True, message=result.message or "Logged out successfully")

    def request_reveal_token(self, pin: str) -> str:
        """Exchange the operator PIN for a reveal token."""
        return self.reveal_gate.issue_token(pin)

    def reveal_api_key(self, token: str) -> str:
        """Exchange a reveal token for the current API key."""
        return self.reveal_gate.reveal(token)

    @staticmethod
    def _require_ready(snapshot: SessionSnapshot) -> None:
        if not snapshot.ready:
            raise NotReadyError()

    @staticmethod
    def _require_key(snapshot: SessionSnapshot, supplied_key: Optional[str]) -> None:
        # Same error whether no key exists or the key is wrong
        expected = snapshot.api_key or ""
        supplied = supplied_key or ""
        if not expected or not secrets.compare_digest(supplied.encode(), expected.encode()):
            raise UnauthorizedError()

    async def _call_backend(self, action: str, call) -> SendResult:
        try:
            return await call
        except UpstreamFailure:
            raise
        except asyncio.TimeoutError:
            logger.warning(f"Backend {action} timed out")
            raise UpstreamFailure(f"Messaging backend timed out during {action}")
        except Exception as e:
            logger.error(f"Backend {action} failed: {e}", exc_info=True)
            raise UpstreamFailure(str(e) or f"Messaging backend {action} failed")
