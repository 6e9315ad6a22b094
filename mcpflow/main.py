"""
MCPFlow - FastAPI Application Entry Point.

An async workflow engine for chaining MCP service calls.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from mcpflow.config import settings
from mcpflow.api.routes import executions, services, websocket, workflows
from mcpflow.workflows.text_analysis import DEMO_WORKFLOW_ID, register_text_analysis_workflow

# Import builtin services to register them
import mcpflow.services.builtin  # noqa: F401


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    # Register the demo workflow
    await register_text_analysis_workflow()

    yield

    # Shutdown
    logger.info("Shutting down...")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="""
## MCPFlow API

Run user-authored workflows that chain MCP service calls.

### Features
- **Nodes**: trigger, MCP service call, condition and output nodes
- **Edges**: Define execution flow, optionally tagged with a condition branch
- **Error strategies**: fail, retry, skip or continue per service node
- **Tracking**: Per-node status, timing and cost for every execution
- **Real-time Updates**: WebSocket support for live execution streaming

### Quick Start
1. List available services: `GET /services`
2. Create a workflow: `POST /workflows`
3. Run the workflow: `POST /workflows/{workflow_id}/execute`
4. Inspect the execution: `GET /executions/{execution_id}`

### Demo Workflow
A pre-registered Text Analysis workflow is available with ID: `text-analysis-demo`
    """,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include routers
app.include_router(workflows.router)
app.include_router(executions.router)
app.include_router(services.router)
app.include_router(websocket.router)


# ============================================================
# Root Endpoints
# ============================================================

@app.get("/", tags=["Root"])
async def root():
    """API root - returns basic info and links."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "description": "An async workflow engine for chaining MCP service calls",
        "docs": "/docs",
        "redoc": "/redoc",
        "endpoints": {
            "workflows": "/workflows",
            "executions": "/executions",
            "services": "/services",
            "websocket_run": "/ws/run/{workflow_id}",
            "websocket_subscribe": "/ws/executions/{execution_id}",
        },
        "demo_workflow": DEMO_WORKFLOW_ID,
    }


@app.get("/health", tags=["Root"])
async def health():
    """Health check endpoint."""
    from mcpflow.storage.memory import execution_storage, workflow_storage
    from mcpflow.services.registry import service_registry

    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "workflows_count": len(workflow_storage),
        "executions_count": len(execution_storage),
        "services_count": len(service_registry),
    }


# ============================================================
# Error Handlers
# ============================================================

@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors."""
    logger.exception(f"Unhandled error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "detail": str(exc) if settings.DEBUG else "An unexpected error occurred",
        },
    )
