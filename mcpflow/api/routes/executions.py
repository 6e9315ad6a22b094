"""
Execution API Routes.

Endpoints for inspecting and cancelling workflow executions.
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Query
import logging

from mcpflow.api.schemas import (
    ErrorResponse,
    ExecutionDetailResponse,
    ExecutionListResponse,
    ExecutionResponse,
    ExecutionStatus,
    NodeExecutionResponse,
)
from mcpflow.engine.executor import workflow_engine
from mcpflow.storage.memory import execution_storage, node_execution_storage


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/executions", tags=["Executions"])


@router.get(
    "",
    response_model=ExecutionListResponse,
)
async def list_executions(
    workflow_id: Optional[str] = None,
    user_id: Optional[str] = None,
    status: Optional[ExecutionStatus] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> ExecutionListResponse:
    """List executions, newest first, optionally filtered."""
    page, total = await execution_storage.list(
        workflow_id=workflow_id,
        user_id=user_id,
        status=status.value if status else None,
        limit=limit,
        offset=offset,
    )
    return ExecutionListResponse(
        executions=[ExecutionResponse(**record.to_dict()) for record in page],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/{execution_id}",
    response_model=ExecutionDetailResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_execution(execution_id: str) -> ExecutionDetailResponse:
    """
    Get an execution and its node executions.

    Use this to poll the status of async executions.
    """
    record = await execution_storage.get(execution_id)
    if not record:
        raise HTTPException(status_code=404, detail=f"Execution '{execution_id}' not found")

    node_records = await node_execution_storage.list_by_execution(execution_id)
    return ExecutionDetailResponse(
        **record.to_dict(),
        node_executions=[NodeExecutionResponse(**n.to_dict()) for n in node_records],
    )


@router.delete(
    "/{execution_id}",
    response_model=ExecutionResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Execution already finished"},
        404: {"model": ErrorResponse},
    },
)
async def cancel_execution(execution_id: str) -> ExecutionResponse:
    """
    Cancel a pending or running execution.

    A running execution stops before its next node.
    """
    record = await execution_storage.get(execution_id)
    if not record:
        raise HTTPException(status_code=404, detail=f"Execution '{execution_id}' not found")

    if record.is_terminal:
        raise HTTPException(
            status_code=400,
            detail=f"Execution '{execution_id}' cannot be cancelled (status: {record.status})"
        )

    signalled = workflow_engine.cancel(execution_id)
    await workflow_engine.recorder.cancel_execution(execution_id)
    logger.info(f"Cancelled execution: {execution_id} (running: {signalled})")

    record = await execution_storage.get(execution_id)
    return ExecutionResponse(**record.to_dict())
