"""Custom exception classes for WA Gateway."""


class GatewayError(Exception):
    """Base exception for WA Gateway errors."""

    status_code: int = 500

    def __init__(self, message: str, code: str = "internal", detail: str = ""):
        self.message = message
        self.code = code
        self.detail = detail
        super().__init__(message)


class IgnoredTransition(GatewayError):
    """Runtime event does not apply to the current session state."""

    def __init__(self, event_type: str, state: str):
        self.event_type = event_type
        self.state = state
        super().__init__(
            f"Ignored {event_type} in state {state}", code="ignored_transition"
        )


class ActionError(GatewayError):
    """A mutating request was rejected before reaching the messaging backend."""

    pass


class NotReadyError(ActionError):
    """Action attempted while the session is not READY."""

    status_code = 409

    def __init__(self, message: str = "WhatsApp client not connected"):
        super().__init__(message, code="not_ready")


class UnauthorizedError(ActionError):
    """Supplied credential does not match."""

    status_code = 401

    def __init__(self, message: str = "Invalid API key"):
        super().__init__(message, code="unauthorized")


class ValidationError(ActionError):
    """A request field is missing or empty."""

    status_code = 422

    def __init__(self, field: str, message: str = ""):
        self.field = field
        super().__init__(
            message or f"Validation error: '{field}' is required",
            code="validation_error",
            detail=field,
        )


class UpstreamFailure(GatewayError):
    """The messaging backend reported a failure."""

    status_code = 502

    def __init__(self, message: str, detail: str = ""):
        super().__init__(message, code="upstream_failure", detail=detail)


class UpstreamTimeout(UpstreamFailure):
    """The messaging backend did not answer in time."""

    status_code = 504

    def __init__(self, message: str = "Messaging backend timed out"):
        super().__init__(message)
        self.code = "upstream_timeout"


class ConnectionError(GatewayError):
    """Errors related to WebSocket connections."""

    pass


class InvalidOriginError(ConnectionError):
    """Invalid WebSocket origin."""

    def __init__(self, origin: str):
        super().__init__(f"Invalid origin: {origin}", code="invalid_origin")


class ConnectionLimitError(ConnectionError):
    """Connection limit reached."""

    def __init__(self, limit: int):
        super().__init__(
            f"Connection limit reached: {limit} concurrent connections",
            code="connection_limit",
        )


class RevealDisabledError(ActionError):
    """Key reveal requested while no reveal PIN is configured."""

    status_code = 404

    def __init__(self, message: str = "API key reveal is not enabled"):
        super().__init__(message, code="reveal_disabled")
