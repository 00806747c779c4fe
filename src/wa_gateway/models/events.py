"""Runtime events reported by the messaging backend."""

from typing import Annotated, Any, Literal, Optional, Union
from pydantic import BaseModel, Field, TypeAdapter


class PairingArtifactIssued(BaseModel):
    """A fresh QR code is available for scanning."""

    type: Literal["pairing_artifact_issued"] = "pairing_artifact_issued"
    image: str = Field(..., min_length=1, description="Opaque encoded QR image")


class ClientAuthenticated(BaseModel):
    """The messaging client finished pairing and is ready."""

    type: Literal["client_authenticated"] = "client_authenticated"
    secret: Optional[str] = Field(
        None, description="Key supplied by the backend; used only if none is stored"
    )


class TransportLost(BaseModel):
    """The transport to the messaging backend dropped."""

    type: Literal["transport_lost"] = "transport_lost"
    reason: Optional[str] = Field(None, description="Backend-reported reason")


class TransportRestored(BaseModel):
    """The transport to the messaging backend is back."""

    type: Literal["transport_restored"] = "transport_restored"


class LoggedOut(BaseModel):
    """Operator-requested logout confirmed by the backend."""

    type: Literal["logged_out"] = "logged_out"


SessionEvent = Union[
    PairingArtifactIssued,
    ClientAuthenticated,
    TransportLost,
    TransportRestored,
    LoggedOut,
]

# Events the bridge may post; logged_out only comes from the gateway
BridgeEvent = Annotated[
    Union[PairingArtifactIssued, ClientAuthenticated, TransportLost, TransportRestored],
    Field(discriminator="type"),
]

_bridge_event_adapter = TypeAdapter(BridgeEvent)


def parse_bridge_event(data: Any) -> BridgeEvent:
    """
    Validate a JSON payload posted by the bridge.

    Raises:
        pydantic.ValidationError: If the payload is not a known bridge event
    """
    return _bridge_event_adapter.validate_python(data)
