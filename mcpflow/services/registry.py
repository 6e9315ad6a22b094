"""
Service Registry for MCPFlow.

The service registry holds the MCP services a workflow can bind its
service nodes to. A service is either a descriptor for a remote server
reached through the MCP gateway, or an in-process handler (a plain
Python function) registered under a slug.
"""

from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass, field
import asyncio
import functools
import logging


logger = logging.getLogger(__name__)


@dataclass
class Service:
    """
    A registered MCP service.
    
    Attributes:
        slug: Unique identifier used by service nodes
        name: Human-readable name
        description: What the service does
        cost_per_call_cents: Charged for every successful call
        handler: In-process implementation, or None for gateway services
    """
    slug: str
    name: str = ""
    description: str = ""
    cost_per_call_cents: int = 0
    category: str = ""
    capabilities: List[str] = field(default_factory=list)
    handler: Optional[Callable[[Dict[str, Any], Dict[str, Any]], Any]] = None
    
    @property
    def is_local(self) -> bool:
        return self.handler is not None
    
    async def invoke(self, inputs: Dict[str, Any], config: Dict[str, Any]) -> Any:
        """
        Run the in-process handler.
        
        Handles both sync and async handlers transparently.
        """
        if self.handler is None:
            raise RuntimeError(f"Service '{self.slug}' has no in-process handler")
        if asyncio.iscoroutinefunction(self.handler):
            return await self.handler(inputs, config)
        # Run sync handler in executor to not block
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            functools.partial(self.handler, inputs, config)
        )
    
    def descriptor(self) -> Dict[str, Any]:
        """The descriptor a service node embeds as its `mcpServer`."""
        return {
            "id": self.slug,
            "slug": self.slug,
            "name": self.name,
            "cost_per_call_cents": self.cost_per_call_cents,
        }
    
    def to_dict(self) -> Dict[str, Any]:
        """Serialize service metadata."""
        return {
            "slug": self.slug,
            "name": self.name,
            "description": self.description,
            "cost_per_call_cents": self.cost_per_call_cents,
            "category": self.category,
            "capabilities": list(self.capabilities),
            "local": self.is_local,
        }


class ServiceRegistry:
    """
    Registry of MCP services.
    
    Usage:
        registry = ServiceRegistry()
        
        @registry.register("word-count", cost_per_call_cents=1)
        def word_count(inputs: dict, config: dict) -> dict:
            return {"words": len(inputs.get("text", "").split())}
        
        # Later
        service = registry.get("word-count")
        result = await service.invoke({"text": "a b"}, {})
    """
    
    def __init__(self):
        self._services: Dict[str, Service] = {}
    
    def register(
        self,
        slug: Optional[str] = None,
        name: str = "",
        description: str = "",
        cost_per_call_cents: int = 0,
        category: str = "",
        capabilities: Optional[List[str]] = None,
    ) -> Callable:
        """
        Decorator to register a function as an in-process service.
        
        Args:
            slug: Service slug (defaults to function name with dashes)
            name: Display name (defaults to the slug)
            description: Service description (defaults to docstring)
            cost_per_call_cents: Cost charged per successful call
            category: Catalogue category
            capabilities: Capability tags
            
        Returns:
            Decorator function
        """
        def decorator(func: Callable) -> Callable:
            service_slug = slug or func.__name__.replace("_", "-")
            self.add(Service(
                slug=service_slug,
                name=name or service_slug,
                description=(description or func.__doc__ or "").strip(),
                cost_per_call_cents=cost_per_call_cents,
                category=category,
                capabilities=capabilities or [],
                handler=func,
            ))
            return func
        
        return decorator
    
    def add(self, service: Service) -> None:
        """Add a service, replacing any service with the same slug."""
        self._services[service.slug] = service
        logger.debug(f"Registered service: {service.slug}")
    
    def get(self, slug: str) -> Optional[Service]:
        """Get a service by slug."""
        return self._services.get(slug)
    
    def remove(self, slug: str) -> bool:
        """Remove a service from the registry."""
        if slug in self._services:
            del self._services[slug]
            return True
        return False
    
    def list_services(self) -> List[Dict[str, Any]]:
        """List all registered services with their metadata."""
        return [service.to_dict() for service in self._services.values()]
    
    def has(self, slug: str) -> bool:
        """Check if a service is registered."""
        return slug in self._services
    
    def __contains__(self, slug: str) -> bool:
        return self.has(slug)
    
    def __len__(self) -> int:
        return len(self._services)
    
    def __iter__(self):
        return iter(self._services.values())


# Global service registry instance
service_registry = ServiceRegistry()


def register_service(
    slug: Optional[str] = None,
    name: str = "",
    description: str = "",
    cost_per_call_cents: int = 0,
    category: str = "",
    capabilities: Optional[List[str]] = None,
) -> Callable:
    """
    Convenience decorator to register a service in the global registry.
    
    Usage:
        @register_service("shout", cost_per_call_cents=2)
        def shout(inputs: dict, config: dict) -> dict:
            return {"text": inputs["text"].upper()}
    """
    return service_registry.register(slug, name, description, cost_per_call_cents, category, capabilities)


def get_service(slug: str) -> Optional[Service]:
    """Get a service from the global registry."""
    return service_registry.get(slug)
