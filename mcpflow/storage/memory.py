"""
In-Memory Storage for MCPFlow.

Provides asyncio-safe storage for workflows, executions, node executions
and stored outputs. Record field names match the persisted wire shapes,
so the stores can be swapped for a database-backed implementation.
"""

from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime
from dataclasses import dataclass, field, fields
import asyncio
import uuid

from mcpflow.engine.definition import WorkflowDefinition


TERMINAL_STATUSES = ("completed", "failed", "cancelled")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class StoredWorkflow:
    """A stored workflow and its aggregate run counters."""
    id: str
    user_id: str
    name: str
    slug: str
    definition: WorkflowDefinition
    version: int = 1
    status: str = "active"
    total_runs: int = 0
    successful_runs: int = 0
    total_cost_cents: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "slug": self.slug,
            "version": self.version,
            "definition": self.definition.model_dump(by_alias=True, exclude_none=True),
            "status": self.status,
            "total_runs": self.total_runs,
            "successful_runs": self.successful_runs,
            "total_cost_cents": self.total_cost_cents,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class ExecutionRecord:
    """One run of a workflow, tracked start to finish."""
    id: str
    workflow_id: str
    user_id: str
    status: str = "pending"
    input_data: Dict[str, Any] = field(default_factory=dict)
    output_data: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    total_cost_cents: int = 0
    current_node_id: Optional[str] = None
    completed_nodes: List[str] = field(default_factory=list)
    failed_nodes: List[str] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "workflow_id": self.workflow_id,
            "user_id": self.user_id,
            "status": self.status,
            "input_data": self.input_data,
            "output_data": self.output_data,
            "error_message": self.error_message,
            "started_at": self.started_at.isoformat(),
            "completed_at": _iso(self.completed_at),
            "duration_ms": self.duration_ms,
            "total_cost_cents": self.total_cost_cents,
            "current_node_id": self.current_node_id,
            "completed_nodes": list(self.completed_nodes),
            "failed_nodes": list(self.failed_nodes),
        }


@dataclass
class NodeExecutionRecord:
    """One recorded attempt to run a single node."""
    id: str
    execution_id: str
    node_id: str
    status: str
    input_data: Dict[str, Any] = field(default_factory=dict)
    output_data: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    mcp_server_slug: Optional[str] = None
    mcp_cost_cents: int = 0
    retry_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "execution_id": self.execution_id,
            "node_id": self.node_id,
            "status": self.status,
            "input_data": self.input_data,
            "output_data": self.output_data,
            "error_message": self.error_message,
            "started_at": self.started_at.isoformat(),
            "completed_at": _iso(self.completed_at),
            "duration_ms": self.duration_ms,
            "mcp_server_slug": self.mcp_server_slug,
            "mcp_cost_cents": self.mcp_cost_cents,
            "retry_count": self.retry_count,
        }


@dataclass
class StoredOutput:
    """A snapshot delivered by an output node with the `store` sink."""
    id: str
    execution_id: Optional[str]
    config: Dict[str, Any]
    payload: Dict[str, Any]
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "execution_id": self.execution_id,
            "config": self.config,
            "payload": self.payload,
            "created_at": self.created_at.isoformat(),
        }


class WorkflowStorage:
    """
    In-memory storage for workflows.

    Run counters are only changed through increment_runs, which applies
    the increment under the store lock so concurrent runs never lose
    updates.
    """

    def __init__(self):
        self._workflows: Dict[str, StoredWorkflow] = {}
        self._lock = asyncio.Lock()

    async def save(
        self,
        name: str,
        definition: WorkflowDefinition,
        user_id: str = "anonymous",
        workflow_id: Optional[str] = None,
        slug: Optional[str] = None,
        status: str = "active",
    ) -> StoredWorkflow:
        """
        Save a workflow, replacing any workflow with the same id.

        Args:
            name: Workflow name
            definition: Parsed workflow definition
            user_id: Owner of the workflow
            workflow_id: Id to store under (generated if not provided)
            slug: URL-friendly name (derived from name if not provided)
            status: draft, active or archived

        Returns:
            The stored workflow
        """
        async with self._lock:
            workflow_id = workflow_id or str(uuid.uuid4())
            existing = self._workflows.get(workflow_id)
            stored = StoredWorkflow(
                id=workflow_id,
                user_id=user_id,
                name=name,
                slug=slug or _slugify(name),
                definition=definition,
                status=status,
                version=existing.version + 1 if existing else 1,
            )
            if existing:
                stored.total_runs = existing.total_runs
                stored.successful_runs = existing.successful_runs
                stored.total_cost_cents = existing.total_cost_cents
                stored.created_at = existing.created_at
            self._workflows[workflow_id] = stored
            return stored

    async def get(self, workflow_id: str) -> Optional[StoredWorkflow]:
        """Get a workflow by ID."""
        async with self._lock:
            return self._workflows.get(workflow_id)

    async def delete(self, workflow_id: str) -> bool:
        """Delete a workflow."""
        async with self._lock:
            if workflow_id in self._workflows:
                del self._workflows[workflow_id]
                return True
            return False

    async def update(
        self,
        workflow_id: str,
        name: Optional[str] = None,
        definition: Optional[WorkflowDefinition] = None,
        status: Optional[str] = None,
    ) -> Optional[StoredWorkflow]:
        """
        Update fields of a stored workflow in place.

        The version is bumped only when a new definition is given.
        Runs already in flight keep the definition they started with.
        """
        async with self._lock:
            stored = self._workflows.get(workflow_id)
            if stored is None:
                return None
            if name:
                stored.name = name
            if definition is not None:
                stored.definition = definition
                stored.version += 1
            if status:
                stored.status = status
            stored.updated_at = datetime.now()
            return stored

    async def list_all(self, user_id: Optional[str] = None) -> List[StoredWorkflow]:
        """List stored workflows, optionally only those of one user."""
        async with self._lock:
            return [
                w for w in self._workflows.values()
                if user_id is None or w.user_id == user_id
            ]

    async def increment_runs(self, workflow_id: str, success: bool, cost_cents: int = 0) -> Optional[StoredWorkflow]:
        """Atomically bump the run counters of a workflow."""
        async with self._lock:
            stored = self._workflows.get(workflow_id)
            if stored is None:
                return None
            stored.total_runs += 1
            if success:
                stored.successful_runs += 1
            stored.total_cost_cents += cost_cents
            return stored

    def __len__(self) -> int:
        return len(self._workflows)


class ExecutionStorage:
    """
    In-memory storage for workflow executions.

    Records move pending -> running -> completed/failed/cancelled.
    Once terminal, a record is never finalized again.
    """

    _FIELDS = {f.name for f in fields(ExecutionRecord)} - {"id", "workflow_id", "user_id"}

    def __init__(self):
        self._executions: Dict[str, ExecutionRecord] = {}
        self._lock = asyncio.Lock()

    async def create(
        self,
        workflow_id: str,
        user_id: str,
        input_data: Dict[str, Any]
    ) -> ExecutionRecord:
        """Create a pending execution record."""
        async with self._lock:
            record = ExecutionRecord(
                id=str(uuid.uuid4()),
                workflow_id=workflow_id,
                user_id=user_id,
                input_data=input_data,
            )
            self._executions[record.id] = record
            return record

    async def get(self, execution_id: str) -> Optional[ExecutionRecord]:
        """Get an execution by ID."""
        async with self._lock:
            return self._executions.get(execution_id)

    async def update(self, execution_id: str, **updates: Any) -> Optional[ExecutionRecord]:
        """Update fields of an execution."""
        unknown = set(updates) - self._FIELDS
        if unknown:
            raise ValueError(f"Unknown execution fields: {sorted(unknown)}")
        async with self._lock:
            record = self._executions.get(execution_id)
            if record is None:
                return None
            for name, value in updates.items():
                setattr(record, name, value)
            return record

    async def append_node(self, execution_id: str, node_id: str, failed: bool) -> Optional[ExecutionRecord]:
        """Add a node id to the completed or failed list of an execution."""
        async with self._lock:
            record = self._executions.get(execution_id)
            if record is None:
                return None
            target = record.failed_nodes if failed else record.completed_nodes
            target.append(node_id)
            return record

    async def finalize(self, execution_id: str, status: str, **updates: Any) -> Optional[ExecutionRecord]:
        """
        Move an execution into a terminal status.

        Returns:
            The updated record, or None if the execution does not exist
            or has already been finalized
        """
        if status not in TERMINAL_STATUSES:
            raise ValueError(f"'{status}' is not a terminal status")
        unknown = set(updates) - self._FIELDS
        if unknown:
            raise ValueError(f"Unknown execution fields: {sorted(unknown)}")
        async with self._lock:
            record = self._executions.get(execution_id)
            if record is None or record.is_terminal:
                return None
            record.status = status
            record.completed_at = updates.pop("completed_at", None) or datetime.now()
            for name, value in updates.items():
                setattr(record, name, value)
            return record

    async def list(
        self,
        workflow_id: Optional[str] = None,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[ExecutionRecord], int]:
        """
        List executions, newest first.

        Returns:
            The requested page and the total number of matches
        """
        async with self._lock:
            matches = [
                r for r in self._executions.values()
                if (workflow_id is None or r.workflow_id == workflow_id)
                and (user_id is None or r.user_id == user_id)
                and (status is None or r.status == status)
            ]
        matches.sort(key=lambda r: r.started_at, reverse=True)
        return matches[offset:offset + limit], len(matches)

    def __len__(self) -> int:
        return len(self._executions)


class NodeExecutionStorage:
    """Insert-only storage for node execution records."""

    def __init__(self):
        self._records: Dict[str, List[NodeExecutionRecord]] = {}
        self._lock = asyncio.Lock()

    async def insert(self, record: NodeExecutionRecord) -> NodeExecutionRecord:
        async with self._lock:
            self._records.setdefault(record.execution_id, []).append(record)
            return record

    async def list_by_execution(self, execution_id: str) -> List[NodeExecutionRecord]:
        """Node executions of one run, ordered by start time."""
        async with self._lock:
            records = list(self._records.get(execution_id, []))
        return sorted(records, key=lambda r: r.started_at)


class OutputStorage:
    """Storage backing the `store` output sink."""

    def __init__(self):
        self._outputs: List[StoredOutput] = []
        self._lock = asyncio.Lock()

    async def save(
        self,
        config: Dict[str, Any],
        payload: Dict[str, Any],
        execution_id: Optional[str] = None,
    ) -> StoredOutput:
        async with self._lock:
            stored = StoredOutput(
                id=str(uuid.uuid4()),
                execution_id=execution_id,
                config=config,
                payload=payload,
            )
            self._outputs.append(stored)
            return stored

    async def list_by_execution(self, execution_id: str) -> List[StoredOutput]:
        async with self._lock:
            return [o for o in self._outputs if o.execution_id == execution_id]


def _slugify(name: str) -> str:
    slug = "".join(c.lower() if c.isalnum() else "-" for c in name)
    return "-".join(part for part in slug.split("-") if part) or "workflow"


# Global storage instances
workflow_storage = WorkflowStorage()
execution_storage = ExecutionStorage()
node_execution_storage = NodeExecutionStorage()
output_storage = OutputStorage()
