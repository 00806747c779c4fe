"""Messaging backend reached over HTTP.

The messaging client itself runs in a separate bridge process. The bridge
pushes runtime events to ``POST /bridge/events`` and exposes:

    POST {base}/send     {"phoneNumber": ..., "message": ...} -> {"success", "message"}
    POST {base}/logout   {}                                   -> {"success", "message"}
    GET  {base}/health                                        -> 2xx while alive
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from ..exceptions import UpstreamFailure, UpstreamTimeout
from ..models.events import TransportLost, TransportRestored
from ..types import EventSink
from .base import MessagingBackend, SendResult

logger = logging.getLogger(__name__)


class HttpBridgeBackend(MessagingBackend):
    """Messaging backend that forwards actions to an HTTP bridge."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        health_interval: float = 0.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__()
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.health_interval = health_interval
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._health_task: Optional[asyncio.Task[None]] = None
        self._transport_alive: Optional[bool] = None

        logger.info(f"Initialized HTTP bridge backend: {self.base_url}")

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"X-Bridge-Token": self.token} if self.token else {}
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def start(self, emit: EventSink) -> None:
        await super().start(emit)
        if self.health_interval > 0 and self._health_task is None:
            self._health_task = asyncio.create_task(self._health_loop())
            logger.info(f"Bridge health watch started (every {self.health_interval}s)")

    async def send_message(self, recipient: str, body: str) -> SendResult:
        return await self._post("/send", {"phoneNumber": recipient, "message": body})

    async def logout(self) -> SendResult:
        return await self._post("/logout", {})

    async def check_health(self) -> bool:
        """Return True if the bridge answers its health endpoint."""
        try:
            response = await self._get_client().get("/health")
            return response.is_success
        except httpx.HTTPError as e:
            logger.debug(f"Bridge health check failed: {e}")
            return False

    async def shutdown(self) -> None:
        if self._health_task:
            self._health_task.cancel()
            try:
                await self._health_task
            except asyncio.CancelledError:
                pass
            self._health_task = None

        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _post(self, path: str, payload: Dict[str, Any]) -> SendResult:
        try:
            response = await self._get_client().post(path, json=payload)
        except httpx.TimeoutException:
            logger.warning(f"Bridge {path} timed out after {self.timeout}s")
            raise UpstreamTimeout()
        except httpx.HTTPError as e:
            logger.error(f"Bridge {path} request failed: {e}")
            raise UpstreamFailure(f"Messaging backend unreachable: {e}")

        try:
            data = response.json()
        except ValueError:
            data = None

        # The bridge speaks the same {success, message} contract; pass it through
        if isinstance(data, dict) and "success" in data:
            return SendResult(
                success=bool(data["success"]),
                message=str(data.get("message") or ""),
            )

        if response.is_success:
            return SendResult(success=True, message="OK")

        raise UpstreamFailure(
            f"Messaging backend returned HTTP {response.status_code}",
            detail=response.text[:200],
        )

    async def _health_loop(self) -> None:
        """Background task translating health edges into transport events."""
        while True:
            try:
                await asyncio.sleep(self.health_interval)
                await self._report_health(await self.check_health())
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in bridge health loop: {e}", exc_info=True)

    async def _report_health(self, alive: bool) -> None:
        if alive == self._transport_alive:
            return
        self._transport_alive = alive

        if self._emit is None:
            return
        if alive:
            logger.info("Bridge transport restored")
            await self._emit(TransportRestored())
        else:
            logger.warning("Bridge transport lost")
            await self._emit(TransportLost(reason="health check failed"))
