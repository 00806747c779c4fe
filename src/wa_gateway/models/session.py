"""Session state models."""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class SessionState(str, Enum):
    """Pairing/readiness state of the automation session."""

    UNPAIRED = "unpaired"
    AWAITING_PAIRING = "awaiting_pairing"
    READY = "ready"
    DISCONNECTED = "disconnected"


class SessionSnapshot(BaseModel):
    """Immutable view of the session at one point in its history."""

    model_config = ConfigDict(frozen=True)

    state: SessionState = Field(SessionState.UNPAIRED, description="Current state")
    pairing_artifact: Optional[str] = Field(
        None, description="QR image, only present while awaiting pairing"
    )
    api_key: Optional[str] = Field(None, description="Secret authorizing mutating requests")
    connected: bool = Field(False, description="Whether the messaging transport is alive")
    version: int = Field(0, description="Bumped by every applied transition")
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def ready(self) -> bool:
        return self.state == SessionState.READY

    def public_view(self) -> dict:
        """Snapshot fields safe to hand to any caller (no key, no image)."""
        return {
            "state": self.state.value,
            "connected": self.connected,
            "awaitingPairing": self.state == SessionState.AWAITING_PAIRING,
            "ready": self.ready,
            "version": self.version,
            "updatedAt": self.updated_at.isoformat(),
        }

    def __repr__(self) -> str:
        # api_key and the image payload are kept out of logs
        return (
            f"SessionSnapshot(state={self.state.value}, connected={self.connected}, "
            f"has_key={self.api_key is not None}, version={self.version})"
        )

    __str__ = __repr__
