"""
Output Sinks.

Destinations for the snapshot an output node produces. Delivery is best
effort: a failed delivery is logged and never fails the output node.
"""

from typing import Any, Dict, Optional
import logging

import httpx

from mcpflow.config import settings
from mcpflow.storage.memory import OutputStorage, output_storage


logger = logging.getLogger(__name__)


class WebhookSink:
    """POSTs output snapshots as JSON to a configured URL."""
    
    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout if timeout is not None else settings.WEBHOOK_TIMEOUT
        self._transport = transport
    
    async def post(self, url: str, payload: Dict[str, Any]) -> bool:
        """
        Deliver a payload.
        
        Returns:
            True if the webhook accepted the payload, False otherwise
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload)
                response.raise_for_status()
        except (httpx.HTTPError, TypeError, ValueError) as e:
            logger.warning(f"Webhook delivery to {url} failed: {e}")
            return False
        
        logger.info(f"Delivered output to webhook {url}")
        return True


class StoreSink:
    """Persists output snapshots in the output store."""
    
    def __init__(self, storage: Optional[OutputStorage] = None):
        self.storage = storage if storage is not None else output_storage
    
    async def store(
        self,
        config: Dict[str, Any],
        payload: Dict[str, Any],
        execution_id: Optional[str] = None,
    ) -> None:
        stored = await self.storage.save(config, payload, execution_id=execution_id)
        logger.info(f"Stored output {stored.id} for execution {execution_id}")
