"""
API package - FastAPI routes and schemas.
"""

from mcpflow.api.routes import executions, services, websocket, workflows

__all__ = ["executions", "services", "websocket", "workflows"]
