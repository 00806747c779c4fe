"""Push events and request/response bodies."""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PushEvent(BaseModel):
    """Base for server -> observer events."""

    model_config = ConfigDict(populate_by_name=True)

    version: int = Field(0, description="Session version that produced this event")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class ConnectivityEvent(PushEvent):
    """Transport liveness changed."""

    type: Literal["connectivity"] = "connectivity"
    connected: bool


class PairingArtifactEvent(PushEvent):
    """New QR code, or ``image=None`` once it is no longer valid."""

    type: Literal["pairing_artifact"] = "pairing_artifact"
    image: Optional[str] = None

    def to_wire(self) -> dict:
        # image=None is meaningful here (artifact cleared), so keep it
        return self.model_dump(by_alias=True)


class ReadinessEvent(PushEvent):
    """Readiness changed; carries the key when it was just minted or on replay."""

    type: Literal["readiness"] = "readiness"
    ready: bool
    api_key: Optional[str] = Field(None, alias="apiKey")


class SendMessageRequest(BaseModel):
    """Outbound message request from the UI."""

    model_config = ConfigDict(populate_by_name=True)

    # Defaults keep the {success, message} contract for missing fields;
    # emptiness is reported by the gateway.
    api_key: str = Field("", alias="apiKey")
    phone_number: str = Field("", alias="phoneNumber")
    message: str = ""

    @field_validator("phone_number", mode="before")
    @classmethod
    def coerce_phone_number(cls, v: Any) -> Any:
        """Accept numeric phone numbers; JSON clients often send them unquoted."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class LogoutRequest(BaseModel):
    """Logout request; the key is only checked when configured to."""

    model_config = ConfigDict(populate_by_name=True)

    api_key: Optional[str] = Field(None, alias="apiKey")


class RevealTokenRequest(BaseModel):
    """Exchange the operator PIN for a short-lived reveal token."""

    pin: str = ""


class RevealKeyRequest(BaseModel):
    """Exchange a reveal token for the API key."""

    token: str = ""


class ActionResponse(BaseModel):
    """Uniform body for every mutating endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    code: Optional[str] = None


class RevealTokenResponse(ActionResponse):
    token: Optional[str] = None
    expires_in: Optional[int] = Field(None, alias="expiresIn")


class RevealKeyResponse(ActionResponse):
    api_key: Optional[str] = Field(None, alias="apiKey")
