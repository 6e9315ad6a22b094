"""
Services package - Service registry, MCP client and output sinks.
"""

from mcpflow.services.registry import Service, ServiceRegistry, service_registry, register_service, get_service
from mcpflow.services.client import MCPServiceClient
from mcpflow.services.sinks import StoreSink, WebhookSink

__all__ = [
    "Service",
    "ServiceRegistry",
    "service_registry",
    "register_service",
    "get_service",
    "MCPServiceClient",
    "StoreSink",
    "WebhookSink",
]
