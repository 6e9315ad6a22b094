"""
Execution Context and Node Result Envelope.

The context is the per-run mutable state: the input payload, every node
output produced so far and scoped variables. It is owned by exactly one
traversal and never shared between runs.
"""

from typing import Any, Dict, Optional
from dataclasses import dataclass, field
from copy import deepcopy


@dataclass
class ExecutionContext:
    """
    State of a single workflow run.

    Attributes:
        execution_id: Id of the persisted execution record
        workflow_id: Workflow being run
        user_id: User the run belongs to
        input_data: Input payload the run was started with
        node_outputs: node id -> output, written once per successful visit
        variables: Scoped variables readable as $var.<name>
    """
    execution_id: str
    workflow_id: str
    user_id: str
    input_data: Dict[str, Any] = field(default_factory=dict)
    node_outputs: Dict[str, Any] = field(default_factory=dict)
    variables: Dict[str, Any] = field(default_factory=dict)

    def set_output(self, node_id: str, output: Any) -> None:
        self.node_outputs[node_id] = output

    def has_output(self, node_id: str) -> bool:
        return node_id in self.node_outputs

    def snapshot(self) -> Dict[str, Any]:
        """Copy of every node output recorded so far, keyed by node id."""
        return deepcopy(self.node_outputs)


@dataclass
class NodeResult:
    """Uniform result of one node visit."""
    success: bool
    output: Any = None
    error: Optional[str] = None
    cost_cents: int = 0
    duration_ms: int = 0
    retry_count: int = 0
    input: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, output: Any = None, cost_cents: int = 0, input: Optional[Dict[str, Any]] = None) -> "NodeResult":
        return cls(success=True, output=output, cost_cents=cost_cents, input=input or {})

    @classmethod
    def failed(cls, error: str, input: Optional[Dict[str, Any]] = None) -> "NodeResult":
        return cls(success=False, error=error, input=input or {})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "output": self.output,
            "error": self.error,
            "cost_cents": self.cost_cents,
            "duration_ms": self.duration_ms,
            "retry_count": self.retry_count,
        }
