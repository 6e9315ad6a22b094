"""
Workflow Definition Models.

A workflow definition is the user-authored graph the engine runs: an
ordered list of nodes, an ordered list of edges and run settings. The
shapes follow the canvas JSON (camelCase keys), parsed into frozen
pydantic models so a run can never mutate its own definition.
"""

from typing import Any, Dict, List, Optional
from enum import Enum
import uuid

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny, field_validator, model_validator

from mcpflow.engine.errors import ConfigurationError


class NodeKind(str, Enum):
    """Kinds of nodes the engine knows how to execute."""
    TRIGGER = "trigger"
    SERVICE = "service"
    CONDITION = "condition"
    OUTPUT = "output"


# Canvas names for node kinds
KIND_ALIASES = {
    "mcpServer": NodeKind.SERVICE.value,
}


class ErrorStrategy(str, Enum):
    """What a run does when a node fails."""
    FAIL = "fail"
    RETRY = "retry"
    SKIP = "skip"
    CONTINUE = "continue"


class TriggerType(str, Enum):
    MANUAL = "manual"
    SCHEDULE = "schedule"
    WEBHOOK = "webhook"


class OutputType(str, Enum):
    """Sinks an output node can deliver to."""
    RETURN = "return"
    WEBHOOK = "webhook"
    STORE = "store"


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class _DefinitionModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="allow")


# ============================================================
# Node Data
# ============================================================

class ServiceDescriptor(_DefinitionModel):
    """The MCP service a service node is bound to."""
    id: Optional[str] = None
    slug: str
    name: str = ""
    cost_per_call_cents: int = 0

    @field_validator("cost_per_call_cents", mode="before")
    @classmethod
    def _cost_or_zero(cls, value):
        return value or 0


class NodeInput(_DefinitionModel):
    """
    A declared input of a service node.

    `source` is a reference (e.g. "$input.user.id"); `default` is used
    when the reference resolves to nothing.
    """
    id: Optional[str] = None
    name: Optional[str] = None
    type: str = "string"
    required: bool = False
    default: Any = None
    source: Optional[str] = None

    @property
    def has_default(self) -> bool:
        return "default" in self.model_fields_set

    @property
    def key(self) -> Optional[str]:
        """Name the resolved value is passed to the service under."""
        return self.name or self.source or self.id


class NodeData(_DefinitionModel):
    """Payload shared by every node kind."""
    label: str = ""


class TriggerNodeData(NodeData):
    trigger_type: TriggerType = Field(TriggerType.MANUAL, alias="triggerType")
    config: Dict[str, Any] = Field(default_factory=dict)


class ServiceNodeData(NodeData):
    service: Optional[ServiceDescriptor] = Field(None, alias="mcpServer")
    inputs: List[NodeInput] = Field(default_factory=list)
    outputs: List[Dict[str, Any]] = Field(default_factory=list)
    config: Dict[str, Any] = Field(default_factory=dict)
    on_error: ErrorStrategy = Field(ErrorStrategy.FAIL, alias="onError")
    max_retries: int = Field(0, alias="maxRetries", ge=0)
    timeout: Optional[int] = Field(None, description="Per-call timeout in ms", gt=0)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, values):
        # The canvas sends null for unset error policy fields
        if isinstance(values, dict):
            values = {
                k: v for k, v in values.items()
                if not (v is None and k in ("onError", "on_error", "maxRetries", "max_retries"))
            }
        return values


class ConditionNodeData(NodeData):
    condition: str = ""
    true_label: Optional[str] = Field(None, alias="trueLabel")
    false_label: Optional[str] = Field(None, alias="falseLabel")


class OutputNodeData(NodeData):
    output_type: OutputType = Field(OutputType.RETURN, alias="outputType")
    config: Dict[str, Any] = Field(default_factory=dict)


_DATA_MODELS = {
    NodeKind.TRIGGER.value: TriggerNodeData,
    NodeKind.SERVICE.value: ServiceNodeData,
    NodeKind.CONDITION.value: ConditionNodeData,
    NodeKind.OUTPUT.value: OutputNodeData,
}


# ============================================================
# Nodes and Edges
# ============================================================

class WorkflowNode(_DefinitionModel):
    """
    A node in the workflow graph.

    `type` is normalised to a NodeKind value when it names a known kind;
    unknown kinds are kept verbatim and fail when executed. `data` is
    parsed into the kind-specific payload model.
    """
    id: str
    type: str
    data: SerializeAsAny[NodeData] = Field(default_factory=NodeData)
    position: Optional[Dict[str, float]] = None

    @model_validator(mode="before")
    @classmethod
    def _parse_data(cls, values):
        if not isinstance(values, dict):
            return values
        values = dict(values)
        kind = KIND_ALIASES.get(values.get("type"), values.get("type"))
        values["type"] = kind
        data = values.get("data")
        if data is None or isinstance(data, dict):
            values["data"] = _DATA_MODELS.get(kind, NodeData).model_validate(data or {})
        return values

    @property
    def label(self) -> str:
        return self.data.label or self.id

    @property
    def error_strategy(self) -> ErrorStrategy:
        """Only service nodes carry an error policy; everything else fails the run."""
        if isinstance(self.data, ServiceNodeData):
            return self.data.on_error
        return ErrorStrategy.FAIL

    @property
    def max_retries(self) -> int:
        if isinstance(self.data, ServiceNodeData):
            return self.data.max_retries
        return 0


class EdgeData(_DefinitionModel):
    mapping: Dict[str, str] = Field(
        default_factory=dict,
        description="Scoped variable name -> path into the source output (or a $reference)",
    )


class WorkflowEdge(_DefinitionModel):
    """A directed connection, optionally tagged with a condition branch."""
    id: Optional[str] = None
    source: str
    target: str
    branch: Optional[str] = Field(None, alias="sourceHandle")
    data: Optional[EdgeData] = None

    @property
    def branch_value(self) -> Optional[bool]:
        """The condition outcome this edge is taken on, or None if untagged."""
        if self.branch == "true":
            return True
        if self.branch == "false":
            return False
        return None

    @property
    def mapping(self) -> Dict[str, str]:
        return self.data.mapping if self.data else {}


class WorkflowSettings(_DefinitionModel):
    max_cost_cents: Optional[int] = Field(None, alias="maxCostCents", ge=0)
    timeout: Optional[int] = Field(None, description="Whole-run timeout in ms", gt=0)
    parallel_execution: bool = Field(False, alias="parallelExecution")
    log_level: LogLevel = Field(LogLevel.INFO, alias="logLevel")


# ============================================================
# Definition
# ============================================================

class WorkflowDefinition(_DefinitionModel):
    """
    A workflow graph: nodes, edges and settings.

    Runnable when it has at least one trigger node and every edge
    references nodes present in the node list.
    """
    nodes: List[WorkflowNode] = Field(default_factory=list)
    edges: List[WorkflowEdge] = Field(default_factory=list)
    settings: WorkflowSettings = Field(default_factory=WorkflowSettings)

    def node_map(self) -> Dict[str, WorkflowNode]:
        return {n.id: n for n in self.nodes}

    def trigger_nodes(self) -> List[WorkflowNode]:
        return [n for n in self.nodes if n.type == NodeKind.TRIGGER.value]

    def outgoing_edges(self) -> Dict[str, List[WorkflowEdge]]:
        """Adjacency list: source node id -> edges leaving it, in definition order."""
        adjacency: Dict[str, List[WorkflowEdge]] = {}
        for edge in self.edges:
            adjacency.setdefault(edge.source, []).append(edge)
        return adjacency

    def validate_graph(self) -> List[str]:
        """
        Validate the graph structure.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if not self.nodes:
            errors.append("Workflow must have at least one node")
            return errors

        seen = set()
        for node in self.nodes:
            if node.id in seen:
                errors.append(f"Duplicate node id '{node.id}'")
            seen.add(node.id)

        if not self.trigger_nodes():
            errors.append("No trigger node found")

        for edge in self.edges:
            if edge.source not in seen:
                errors.append(f"Edge source '{edge.source}' is not a valid node")
            if edge.target not in seen:
                errors.append(f"Edge target '{edge.target}' is not a valid node")

        return errors

    def ensure_runnable(self) -> None:
        """Raise ConfigurationError listing every validation problem, if any."""
        errors = self.validate_graph()
        if errors:
            raise ConfigurationError("; ".join(errors))

    def new_node_id(self) -> str:
        """Generate a node id that is unique within this definition."""
        existing = {n.id for n in self.nodes}
        while True:
            candidate = str(uuid.uuid4())
            if candidate not in existing:
                return candidate

    def to_mermaid(self) -> str:
        """Generate a Mermaid diagram of the workflow."""
        lines = ["graph TD"]

        for node in self.nodes:
            key = _mermaid_id(node.id)
            label = node.label.replace('"', "'")
            if node.type == NodeKind.TRIGGER.value:
                lines.append(f'    {key}(["{label}"])')
            elif node.type == NodeKind.CONDITION.value:
                lines.append(f'    {key}{{"{label}"}}')
            elif node.type == NodeKind.OUTPUT.value:
                lines.append(f'    {key}[/"{label}"/]')
            else:
                lines.append(f'    {key}["{label}"]')

        for edge in self.edges:
            source, target = _mermaid_id(edge.source), _mermaid_id(edge.target)
            if edge.branch:
                lines.append(f"    {source} -->|{edge.branch}| {target}")
            else:
                lines.append(f"    {source} --> {target}")

        return "\n".join(lines)


def _mermaid_id(node_id: str) -> str:
    return "n_" + "".join(c if c.isalnum() else "_" for c in node_id)
