"""Server-side gate for revealing the API key."""

import logging
import secrets
import time
from typing import Callable, Dict, Optional

from .exceptions import NotReadyError, RevealDisabledError, UnauthorizedError
from .session_store import SessionStore

logger = logging.getLogger(__name__)


class RevealGate:
    """
    Exchanges an operator PIN for a short-lived, single-use reveal token,
    and a reveal token for the current API key.

    While enabled, the key is withheld from the push channel, so this gate
    is the only way to read it.
    """

    def __init__(
        self,
        store: SessionStore,
        pin: Optional[str] = None,
        token_ttl_seconds: int = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self._pin = pin
        self.token_ttl_seconds = token_ttl_seconds
        self._clock = clock
        self._tokens: Dict[str, float] = {}  # token -> expiry

    @property
    def enabled(self) -> bool:
        return bool(self._pin)

    def issue_token(self, pin: str) -> str:
        """
        Validate the PIN and hand out a reveal token.

        Raises:
            RevealDisabledError: If no PIN is configured
            UnauthorizedError: If the PIN does not match
        """
        if not self._pin:
            raise RevealDisabledError()

        self._purge_expired()
        if not secrets.compare_digest(pin.encode(), self._pin.encode()):
            logger.warning("Rejected reveal token request: wrong PIN")
            raise UnauthorizedError("Invalid PIN")

        token = secrets.token_urlsafe(24)
        self._tokens[token] = self._clock() + self.token_ttl_seconds
        logger.info(f"Issued reveal token (valid {self.token_ttl_seconds}s)")
        return token

    def reveal(self, token: str) -> str:
        """
        Consume a reveal token and return the API key.

        Raises:
            RevealDisabledError: If no PIN is configured
            UnauthorizedError: If the token is unknown, used or expired
            NotReadyError: If no key has been minted yet
        """
        if not self._pin:
            raise RevealDisabledError()

        expires_at = self._tokens.pop(token, None)
        if expires_at is None or expires_at < self._clock():
            raise UnauthorizedError("Invalid or expired reveal token")

        api_key = self.store.get_snapshot().api_key
        if api_key is None:
            raise NotReadyError("No API key has been issued")
        return api_key

    def _purge_expired(self) -> None:
        now = self._clock()
        for token in [t for t, expires_at in self._tokens.items() if expires_at < now]:
            self._tokens.pop(token, None)
