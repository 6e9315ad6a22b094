"""
Workflow API Routes.

Endpoints for creating, managing, and executing workflows.
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, BackgroundTasks, status
import logging

from mcpflow.api.schemas import (
    ErrorResponse,
    ExecuteRequest,
    ExecuteResponse,
    ExecutionStatus,
    WorkflowCreateRequest,
    WorkflowCreateResponse,
    WorkflowInfoResponse,
    WorkflowListResponse,
    WorkflowUpdateRequest,
)
from mcpflow.engine.definition import WorkflowDefinition
from mcpflow.engine.errors import ConfigurationError
from mcpflow.engine.executor import workflow_engine
from mcpflow.storage.memory import StoredWorkflow, workflow_storage


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workflows", tags=["Workflows"])


# ============================================================
# Workflow CRUD Endpoints
# ============================================================

@router.post(
    "",
    response_model=WorkflowCreateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid workflow definition"},
    }
)
async def create_workflow(request: WorkflowCreateRequest) -> WorkflowCreateResponse:
    """
    Create a new workflow.

    The definition must contain at least one trigger node, unique node
    ids, and edges that only reference nodes in the definition.
    """
    definition = WorkflowDefinition(
        nodes=request.nodes,
        edges=request.edges,
        settings=request.settings,
    )

    try:
        definition.ensure_runnable()
    except ConfigurationError as e:
        raise HTTPException(
            status_code=400,
            detail=f"Workflow validation failed: {e}"
        )

    stored = await workflow_storage.save(
        name=request.name,
        definition=definition,
        user_id=request.user_id,
        slug=request.slug,
        status=request.status.value,
    )

    logger.info(f"Created workflow: {stored.id} ({stored.name})")

    return WorkflowCreateResponse(
        workflow_id=stored.id,
        name=stored.name,
        slug=stored.slug,
        version=stored.version,
        node_count=len(definition.nodes),
    )


def _to_info(stored: StoredWorkflow, detailed: bool = False) -> WorkflowInfoResponse:
    definition = stored.definition
    return WorkflowInfoResponse(
        workflow_id=stored.id,
        user_id=stored.user_id,
        name=stored.name,
        slug=stored.slug,
        version=stored.version,
        status=stored.status,
        node_count=len(definition.nodes),
        nodes=[n.id for n in definition.nodes],
        total_runs=stored.total_runs,
        successful_runs=stored.successful_runs,
        total_cost_cents=stored.total_cost_cents,
        created_at=stored.created_at.isoformat(),
        updated_at=stored.updated_at.isoformat(),
        definition=definition.model_dump(by_alias=True, exclude_none=True) if detailed else None,
        mermaid_diagram=definition.to_mermaid() if detailed else None,
    )


@router.get(
    "",
    response_model=WorkflowListResponse,
)
async def list_workflows(user_id: Optional[str] = None) -> WorkflowListResponse:
    """List all workflows, optionally only those of one user."""
    workflows = await workflow_storage.list_all(user_id=user_id)
    infos = [_to_info(stored) for stored in workflows]
    return WorkflowListResponse(workflows=infos, total=len(infos))


@router.get(
    "/{workflow_id}",
    response_model=WorkflowInfoResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_workflow(workflow_id: str) -> WorkflowInfoResponse:
    """Get a workflow with its definition, run counters and a Mermaid diagram."""
    stored = await workflow_storage.get(workflow_id)
    if not stored:
        raise HTTPException(status_code=404, detail=f"Workflow '{workflow_id}' not found")
    return _to_info(stored, detailed=True)


@router.put(
    "/{workflow_id}",
    response_model=WorkflowInfoResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Nothing to update or invalid definition"},
        404: {"model": ErrorResponse},
    }
)
async def update_workflow(workflow_id: str, request: WorkflowUpdateRequest) -> WorkflowInfoResponse:
    """
    Update the name, status or definition of a workflow.

    Replacing any part of the definition bumps the version.
    """
    stored = await workflow_storage.get(workflow_id)
    if not stored:
        raise HTTPException(status_code=404, detail=f"Workflow '{workflow_id}' not found")

    if not (request.name or request.status or request.changes_definition):
        raise HTTPException(status_code=400, detail="No fields to update")

    definition = None
    if request.changes_definition:
        current = stored.definition
        definition = WorkflowDefinition(
            nodes=request.nodes if request.nodes is not None else current.nodes,
            edges=request.edges if request.edges is not None else current.edges,
            settings=request.settings if request.settings is not None else current.settings,
        )
        try:
            definition.ensure_runnable()
        except ConfigurationError as e:
            raise HTTPException(
                status_code=400,
                detail=f"Workflow validation failed: {e}"
            )

    updated = await workflow_storage.update(
        workflow_id,
        name=request.name,
        definition=definition,
        status=request.status.value if request.status else None,
    )
    if updated is None:
        raise HTTPException(status_code=404, detail=f"Workflow '{workflow_id}' not found")

    logger.info(f"Updated workflow: {workflow_id} (version {updated.version})")
    return _to_info(updated, detailed=True)


@router.delete(
    "/{workflow_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_workflow(workflow_id: str):
    """Delete a workflow."""
    deleted = await workflow_storage.delete(workflow_id)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Workflow '{workflow_id}' not found")
    logger.info(f"Deleted workflow: {workflow_id}")


# ============================================================
# Execution Endpoint
# ============================================================

@router.post(
    "/{workflow_id}/execute",
    response_model=ExecuteResponse,
    response_model_by_alias=True,
    responses={
        400: {"model": ErrorResponse, "description": "Workflow is not active"},
        404: {"model": ErrorResponse},
    }
)
async def execute_workflow(
    workflow_id: str,
    request: ExecuteRequest,
    background_tasks: BackgroundTasks,
) -> ExecuteResponse:
    """
    Execute a workflow with the given input.

    If `async_execution` is True, the workflow runs in the background
    and you can poll it with GET /executions/{execution_id} or watch it
    on /ws/executions/{execution_id}.
    """
    stored = await workflow_storage.get(workflow_id)
    if not stored:
        raise HTTPException(
            status_code=404,
            detail=f"Workflow '{workflow_id}' not found"
        )

    if stored.status != "active":
        raise HTTPException(
            status_code=400,
            detail=f"Workflow '{workflow_id}' is not active (status: {stored.status})"
        )

    if request.async_execution:
        execution = await workflow_engine.create_execution(stored, request.user_id, request.input)
        background_tasks.add_task(
            workflow_engine.execute_workflow,
            stored,
            request.user_id,
            request.input,
            execution,
        )
        return ExecuteResponse(
            execution_id=execution.id,
            status=ExecutionStatus.PENDING,
        )

    result = await workflow_engine.execute_workflow(stored, request.user_id, request.input)

    return ExecuteResponse(
        execution_id=result.execution_id,
        status=result.status,
        success=result.success,
        output=result.output,
        error=result.error,
        duration_ms=result.duration_ms,
        total_cost_cents=result.total_cost_cents,
    )
