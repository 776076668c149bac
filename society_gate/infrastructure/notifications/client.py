"""
Notification webhook client
Pushes transition events to an external dispatcher (resident app, WhatsApp
bridge, ...). Delivery is best effort and never affects the transition.
"""
from typing import Any, Dict, Optional

import httpx
import structlog

from society_gate.config import settings

logger = structlog.get_logger(__name__)


class NotificationClient:
    """Client for the transition notification webhook"""

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = webhook_url if webhook_url is not None else settings.notification_webhook_url
        self.timeout = timeout or settings.notification_timeout_seconds
        self.transport = transport

        self.headers = {
            "Content-Type": "application/json",
            "User-Agent": settings.service_name,
        }

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    async def send(self, payload: Dict[str, Any]) -> bool:
        """POST one event; returns whether the dispatcher accepted it"""
        if not self.enabled:
            return False

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.webhook_url, headers=self.headers, json=payload)
        except httpx.HTTPError as e:
            logger.warning("notification_failed", event=payload.get("event"), error=str(e))
            return False

        if response.status_code >= 400:
            logger.warning(
                "notification_rejected",
                event=payload.get("event"),
                status=response.status_code,
                body=response.text[:200],
            )
            return False

        logger.info("notification_sent", event=payload.get("event"), entity_id=payload.get("entity_id"))
        return True

    async def transition_applied(self, payload: Dict[str, Any]) -> bool:
        return await self.send({"event": "transition_applied", **payload})

    async def entity_created(self, payload: Dict[str, Any]) -> bool:
        return await self.send({"event": "entity_created", **payload})


notification_client = NotificationClient()
