"""
MCP Service Client.

Invokes the service a service node is bound to: in-process services from
the registry are called directly, everything else goes through the MCP
gateway over HTTP.
"""

from typing import Any, Dict, Optional
import logging

import httpx

from mcpflow.config import settings
from mcpflow.engine.errors import ServiceCallError
from mcpflow.services.registry import ServiceRegistry, service_registry


logger = logging.getLogger(__name__)


class MCPServiceClient:
    """
    Calls MCP services by slug.
    
    Gateway calls POST `{gateway_url}/call` with the body
    `{"server": slug, "inputs": {...}, "config": {...}}` and return the
    decoded JSON response. Any transport error or non-2xx response is
    raised as ServiceCallError.
    """
    
    def __init__(
        self,
        registry: Optional[ServiceRegistry] = None,
        gateway_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.
        
        Args:
            registry: Registry holding in-process services
            gateway_url: Base URL of the MCP gateway
            timeout: Gateway request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.registry = registry if registry is not None else service_registry
        self.gateway_url = (gateway_url or settings.MCP_GATEWAY_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.MCP_GATEWAY_TIMEOUT
        self._transport = transport
    
    async def call(self, slug: str, inputs: Dict[str, Any], config: Dict[str, Any]) -> Any:
        """Invoke a service and return its output."""
        service = self.registry.get(slug)
        if service is not None and service.is_local:
            logger.debug(f"Calling in-process service '{slug}'")
            return await service.invoke(inputs, config)
        return await self._call_gateway(slug, inputs, config)
    
    async def _call_gateway(self, slug: str, inputs: Dict[str, Any], config: Dict[str, Any]) -> Any:
        url = f"{self.gateway_url}/call"
        logger.debug(f"Calling MCP server '{slug}' via {url}")
        
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    url,
                    json={"server": slug, "inputs": inputs, "config": config},
                )
        except httpx.HTTPError as e:
            raise ServiceCallError(f"MCP server call failed: {e}") from e
        
        if response.is_error:
            reason = response.reason_phrase or str(response.status_code)
            raise ServiceCallError(
                f"MCP server call failed: {reason}",
                status_code=response.status_code,
            )
        
        try:
            return response.json()
        except ValueError as e:
            raise ServiceCallError(f"MCP server returned invalid JSON: {e}") from e
