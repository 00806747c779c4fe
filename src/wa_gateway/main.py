"""Main FastAPI application with WebSocket support."""

import json
import logging
import secrets
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Body, FastAPI, Header, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from .backends import HttpBridgeBackend, MessagingBackend
from .config import Settings, settings as default_settings
from .exceptions import ConnectionError as ChannelConnectionError
from .exceptions import GatewayError, UnauthorizedError, ValidationError
from .gateway import ActionGateway
from .logging_config import setup_logging
from .models.events import parse_bridge_event
from .models.messages import (
    ActionResponse,
    LogoutRequest,
    RevealKeyRequest,
    RevealKeyResponse,
    RevealTokenRequest,
    RevealTokenResponse,
    SendMessageRequest,
)
from .reveal import RevealGate
from .session_store import SessionStore
from .websocket import NotificationChannel

logger = logging.getLogger(__name__)


def _respond(body: ActionResponse, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, exclude_none=True),
    )


def _validation_error(exc: RequestValidationError) -> ValidationError:
    """Name the first offending body field, or the body itself if unparseable."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    if first.get("type") == "json_invalid":
        return ValidationError("body", "Validation error: request body is not valid JSON")

    names = [part for part in first.get("loc", ()) if isinstance(part, str) and part != "body"]
    if not names:
        return ValidationError("body", "Validation error: invalid request body")
    field = names[-1]
    reason = first.get("msg", "invalid value")
    return ValidationError(field, f"Validation error: '{field}': {reason}")


def create_app(
    settings: Optional[Settings] = None,
    backend: Optional[MessagingBackend] = None,
) -> FastAPI:
    """
    Build the application and its components.

    Each app owns its own store, channel and gateway; nothing is shared
    through module globals, so tests (or several sessions) stay isolated.

    Args:
        settings: Configuration (defaults to environment settings)
        backend: Messaging backend (defaults to the HTTP bridge)
    """
    settings = settings or default_settings

    store = SessionStore(
        api_key_length=settings.API_KEY_LENGTH,
        api_key_policy=settings.API_KEY_POLICY,
    )
    reveal_gate = RevealGate(
        store,
        pin=settings.REVEAL_PIN,
        token_ttl_seconds=settings.REVEAL_TOKEN_TTL_SECONDS,
    )
    channel = NotificationChannel(
        store,
        max_connections=settings.MAX_CONNECTIONS,
        allowed_origins=settings.ALLOWED_ORIGINS,
        queue_size=settings.OBSERVER_QUEUE_SIZE,
        include_api_key=not reveal_gate.enabled,
    )
    if backend is None:
        backend = HttpBridgeBackend(
            base_url=settings.BRIDGE_URL,
            token=settings.BRIDGE_TOKEN,
            timeout=settings.BRIDGE_TIMEOUT,
            health_interval=settings.BRIDGE_HEALTH_INTERVAL,
        )
    gateway = ActionGateway(
        store,
        backend,
        reveal_gate=reveal_gate,
        logout_requires_api_key=settings.LOGOUT_REQUIRES_API_KEY,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan: startup and shutdown."""
        logger.info(f"Starting {settings.PROJECT_NAME}...")
        logger.info(f"API key policy: {settings.API_KEY_POLICY}")
        if reveal_gate.enabled:
            logger.info("Reveal gate enabled: API key withheld from push channel")

        await backend.start(store.apply_transition)
        logger.info(f"{settings.PROJECT_NAME} started successfully")

        yield

        logger.info("Shutting down gracefully...")
        await channel.close_all()
        await backend.shutdown()
        logger.info("Shutdown complete")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.channel = channel
    app.state.gateway = gateway
    app.state.backend = backend

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        logger.info(f"{request.url.path} rejected: {exc.code} ({exc.message})")
        return _respond(
            ActionResponse(success=False, message=exc.message, code=exc.code),
            status_code=exc.status_code,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        error = _validation_error(exc)
        logger.info(f"{request.url.path} rejected: {error.code} ({error.message})")
        return _respond(
            ActionResponse(success=False, message=error.message, code=error.code),
            status_code=error.status_code,
        )

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "ok",
            "service": settings.PROJECT_NAME,
            "session_state": store.get_snapshot().state.value,
            "active_connections": channel.get_connection_count(),
        }

    @app.get("/session")
    async def get_session():
        """Public view of the session (never includes the key)."""
        return store.get_snapshot().public_view()

    @app.post("/send-message")
    async def send_message(request_body: SendMessageRequest):
        """Send a message through the paired account."""
        result = await gateway.send_message(
            request_body.api_key,
            request_body.phone_number,
            request_body.message,
        )
        return _respond(
            ActionResponse(success=result.success, message=result.message),
            status_code=200 if result.success else 502,
        )

    @app.post("/logout")
    async def logout(request_body: Optional[LogoutRequest] = None):
        """Log the paired account out; the API key is invalidated."""
        api_key = request_body.api_key if request_body else None
        result = await gateway.logout(api_key)
        return _respond(ActionResponse(success=True, message=result.message))

    @app.post("/api-key/reveal-token")
    async def request_reveal_token(request_body: RevealTokenRequest):
        """Exchange the operator PIN for a short-lived reveal token."""
        token = gateway.request_reveal_token(request_body.pin)
        return _respond(
            RevealTokenResponse(
                success=True,
                message="Reveal token issued",
                token=token,
                expires_in=gateway.reveal_gate.token_ttl_seconds,
            )
        )

    @app.post("/api-key/reveal")
    async def reveal_api_key(request_body: RevealKeyRequest):
        """Exchange a reveal token for the API key."""
        api_key = gateway.reveal_api_key(request_body.token)
        return _respond(
            RevealKeyResponse(success=True, message="API key revealed", api_key=api_key)
        )

    @app.post("/bridge/events")
    async def bridge_event(
        payload: dict = Body(...),
        x_bridge_token: Optional[str] = Header(None),
    ):
        """Runtime event pushed by the messaging bridge."""
        if settings.BRIDGE_TOKEN and not secrets.compare_digest(
            (x_bridge_token or "").encode(), settings.BRIDGE_TOKEN.encode()
        ):
            logger.warning("Rejected bridge event with invalid token")
            raise UnauthorizedError("Invalid bridge token")

        try:
            event = parse_bridge_event(payload)
        except PydanticValidationError as e:
            logger.warning(f"Rejected malformed bridge event: {e.error_count()} error(s)")
            raise ValidationError("type", f"Invalid bridge event: {payload.get('type')!r}")

        before = store.get_snapshot().version
        snapshot = await store.apply_transition(event)
        return {
            "applied": snapshot.version != before,
            "state": snapshot.state.value,
            "version": snapshot.version,
        }

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """Push channel: session-state events for the browser UI."""
        observer_id = str(uuid.uuid4())

        try:
            await channel.subscribe(observer_id, websocket)
        except ChannelConnectionError as e:
            logger.info(f"Observer {observer_id} refused: {e.code}")
            return

        try:
            while True:
                data = await websocket.receive_json()
                logger.debug(f"[WS IN] {observer_id[:8]}... | {json.dumps(data)[:200]}")

                if isinstance(data, dict) and data.get("type") == "ping":
                    channel.send(observer_id, {"type": "pong"})
                else:
                    logger.debug(f"Ignoring observer message: {data!r:.100}")

        except WebSocketDisconnect:
            logger.info(f"WebSocket disconnected: {observer_id}")

        except Exception as e:
            logger.error(f"WebSocket error: {e}", exc_info=True)

        finally:
            channel.unsubscribe(observer_id)

    return app


def build_app() -> FastAPI:
    """Server entry point (`uvicorn --factory`): configure logging, build from env."""
    settings = Settings()
    setup_logging(
        level=settings.LOG_LEVEL,
        debug=settings.DEBUG,
        secrets=[settings.BRIDGE_TOKEN, settings.REVEAL_PIN],
    )
    return create_app(settings)
