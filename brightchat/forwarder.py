import asyncio
import logging
from typing import Any, Optional

import httpx

from brightchat.exceptions import UpstreamError
from brightchat.models import WebhookPayload

logger = logging.getLogger(__name__)


class WebhookForwarder:
    """
    Relays validated chat messages to the automation webhook.

    Owns one shared httpx client. startup() is idempotent and single-flight:
    concurrent callers wait on the same lock and all see the same client.
    """

    def __init__(self, url: str, timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._lock = asyncio.Lock()

    @property
    def started(self) -> bool:
        return self._client is not None

    async def startup(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        async with self._lock:
            if self._client is None:
                self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
                logger.info("Webhook forwarder started (timeout=%ss)", self.timeout)
        return self._client

    async def shutdown(self) -> None:
        async with self._lock:
            if self._client is None:
                return
            client, self._client = self._client, None
            await client.aclose()
            logger.info("Webhook forwarder stopped")

    async def forward(self, payload: WebhookPayload) -> Any:
        client = await self.startup()
        try:
            resp = await client.post(
                self.url,
                headers={"Content-Type": "application/json"},
                json=payload.model_dump(),
            )
        except httpx.HTTPError as e:
            raise UpstreamError(f"webhook request failed: {e!r}") from e

        if not resp.is_success:
            raise UpstreamError(f"webhook returned {resp.status_code}")

        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamError("webhook returned a non-JSON body") from e
