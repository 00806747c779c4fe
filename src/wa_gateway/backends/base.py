"""Abstract base class for messaging backends."""

from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel, Field

from ..types import EventSink


class SendResult(BaseModel):
    """Outcome reported by the messaging backend, passed through opaquely."""

    success: bool = Field(..., description="Whether the backend accepted the request")
    message: str = Field("", description="Human-readable outcome")


class MessagingBackend(ABC):
    """
    Abstract interface for the process that drives the messaging client.

    Implementations report runtime events (QR issued, authenticated,
    transport lost/restored) through the sink given to ``start`` and
    execute the two outbound actions.
    """

    def __init__(self) -> None:
        self._emit: Optional[EventSink] = None

    async def start(self, emit: EventSink) -> None:
        """
        Begin reporting runtime events.

        Args:
            emit: Coroutine feeding events into the session store
        """
        self._emit = emit

    @abstractmethod
    async def send_message(self, recipient: str, body: str) -> SendResult:
        """
        Deliver one text message.

        Raises:
            UpstreamFailure: If the backend could not be reached
            UpstreamTimeout: If the backend did not answer in time
        """
        pass

    @abstractmethod
    async def logout(self) -> SendResult:
        """Terminate the paired session on the messaging side."""
        pass

    @abstractmethod
    async def shutdown(self) -> None:
        """Cleanup resources on service shutdown."""
        pass
