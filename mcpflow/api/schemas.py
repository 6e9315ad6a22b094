"""
Pydantic Schemas for API Request/Response Models.

These schemas define the structure of data flowing through the API,
providing automatic validation and documentation.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum

from mcpflow.engine.definition import WorkflowEdge, WorkflowNode, WorkflowSettings
from mcpflow.engine.executor import ExecutionStatus


# ============================================================
# Enums
# ============================================================

class WorkflowStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"


# ============================================================
# Workflow Schemas
# ============================================================

class WorkflowCreateRequest(BaseModel):
    """Request to create a new workflow."""
    name: str = Field(..., description="Name of the workflow", min_length=1)
    slug: Optional[str] = Field(None, description="URL-friendly name (derived from name if omitted)")
    user_id: str = Field("anonymous", description="Owner of the workflow")
    status: WorkflowStatus = Field(WorkflowStatus.ACTIVE, description="Only active workflows can be executed")
    nodes: List[WorkflowNode] = Field(..., description="Nodes of the workflow graph")
    edges: List[WorkflowEdge] = Field(default_factory=list, description="Edges between nodes")
    settings: WorkflowSettings = Field(default_factory=WorkflowSettings)

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Summarize ticket",
                "nodes": [
                    {"id": "t1", "type": "trigger", "data": {"label": "Start", "triggerType": "manual"}},
                    {
                        "id": "s1",
                        "type": "mcpServer",
                        "data": {
                            "label": "Stats",
                            "mcpServer": {"slug": "text-stats", "name": "Text Stats", "cost_per_call_cents": 1},
                            "inputs": [{"name": "text", "source": "$input.text", "required": True}],
                            "onError": "retry",
                            "maxRetries": 2,
                        },
                    },
                    {"id": "o1", "type": "output", "data": {"label": "Result", "outputType": "return"}},
                ],
                "edges": [
                    {"id": "e1", "source": "t1", "target": "s1"},
                    {"id": "e2", "source": "s1", "target": "o1"},
                ],
                "settings": {"maxCostCents": 100, "timeout": 30000},
            }
        }


class WorkflowCreateResponse(BaseModel):
    """Response after creating a workflow."""
    workflow_id: str = Field(..., description="Unique identifier for the created workflow")
    name: str
    slug: str
    version: int
    message: str = Field(default="Workflow created successfully")
    node_count: int = Field(..., description="Number of nodes in the workflow")


class WorkflowUpdateRequest(BaseModel):
    """
    Partial update of a workflow.

    Any of nodes, edges or settings replaces that part of the definition
    and bumps the workflow version.
    """
    name: Optional[str] = Field(None, min_length=1)
    status: Optional[WorkflowStatus] = None
    nodes: Optional[List[WorkflowNode]] = None
    edges: Optional[List[WorkflowEdge]] = None
    settings: Optional[WorkflowSettings] = None

    @property
    def changes_definition(self) -> bool:
        return any(part is not None for part in (self.nodes, self.edges, self.settings))


class WorkflowInfoResponse(BaseModel):
    """Response with workflow information."""
    workflow_id: str
    user_id: str
    name: str
    slug: str
    version: int
    status: str
    node_count: int
    nodes: List[str]
    total_runs: int
    successful_runs: int
    total_cost_cents: int
    created_at: str
    updated_at: str
    definition: Optional[Dict[str, Any]] = None
    mermaid_diagram: Optional[str] = Field(None, description="Mermaid diagram of the workflow")


class WorkflowListResponse(BaseModel):
    """Response listing workflows."""
    workflows: List[WorkflowInfoResponse]
    total: int


# ============================================================
# Execution Schemas
# ============================================================

class ExecuteRequest(BaseModel):
    """Request to execute a workflow."""
    input: Dict[str, Any] = Field(default_factory=dict, description="Input payload, readable as $input")
    user_id: str = Field("anonymous", description="User the run belongs to")
    async_execution: bool = Field(
        False,
        description="If true, run in background and return immediately"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "input": {"text": "The release went great, no issues reported."},
                "user_id": "user-1",
                "async_execution": False
            }
        }


class ExecuteResponse(BaseModel):
    """Result of an execution request."""
    model_config = ConfigDict(populate_by_name=True)

    execution_id: str = Field(..., alias="executionId")
    status: ExecutionStatus
    success: Optional[bool] = Field(None, description="Unset until the run has finished")
    output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    duration_ms: int = Field(0, alias="durationMs")
    total_cost_cents: int = Field(0, alias="totalCostCents")


class NodeExecutionResponse(BaseModel):
    """One recorded node visit."""
    id: str
    execution_id: str
    node_id: str
    status: str
    input_data: Dict[str, Any]
    output_data: Optional[Dict[str, Any]]
    error_message: Optional[str]
    started_at: str
    completed_at: Optional[str]
    duration_ms: Optional[int]
    mcp_server_slug: Optional[str]
    mcp_cost_cents: int
    retry_count: int


class ExecutionResponse(BaseModel):
    """A workflow execution record."""
    id: str
    workflow_id: str
    user_id: str
    status: ExecutionStatus
    input_data: Dict[str, Any]
    output_data: Optional[Dict[str, Any]]
    error_message: Optional[str]
    started_at: str
    completed_at: Optional[str]
    duration_ms: Optional[int]
    total_cost_cents: int
    current_node_id: Optional[str]
    completed_nodes: List[str]
    failed_nodes: List[str]


class ExecutionDetailResponse(ExecutionResponse):
    """An execution with its node executions, ordered by start."""
    node_executions: List[NodeExecutionResponse]


class ExecutionListResponse(BaseModel):
    """Paginated list of executions."""
    executions: List[ExecutionResponse]
    total: int
    limit: int
    offset: int


# ============================================================
# Service Schemas
# ============================================================

class ServiceInfo(BaseModel):
    """Information about a registered MCP service."""
    slug: str
    name: str
    description: str
    cost_per_call_cents: int
    category: str
    capabilities: List[str]
    local: bool


class ServiceListResponse(BaseModel):
    """Response listing all registered services."""
    services: List[ServiceInfo]
    total: int


# ============================================================
# Error Schemas
# ============================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    status_code: int
