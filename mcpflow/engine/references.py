"""
Reference Resolution.

References point at data available to a running workflow:

    $input.user.id      -> input payload
    $var.customer       -> scoped variables
    $<node-id>.items.0  -> output of a node that already ran

Anything that is not a reference is returned unchanged. Lookups never
raise; a broken path resolves to MISSING.
"""

from typing import Any, Dict, Iterable
import re

from mcpflow.engine.context import ExecutionContext


REFERENCE_PATTERN = re.compile(r"^\$([\w-]+)\.(.*)$")

INPUT_SOURCE = "input"
VARIABLE_SOURCE = "var"


class _Missing:
    """Marker for a value that does not exist (distinct from None/null)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


def get_path_value(obj: Any, path: str) -> Any:
    """
    Walk a dot-separated path through nested dicts and lists.

    Args:
        obj: Root value
        path: Path such as "user.addresses.0.city"

    Returns:
        The value at the path, or MISSING if any step does not exist
    """
    current = obj
    for part in path.split("."):
        if current is None or current is MISSING:
            return MISSING
        if isinstance(current, dict):
            current = current.get(part, MISSING)
        elif isinstance(current, (list, tuple)):
            try:
                current = current[int(part)]
            except (ValueError, IndexError):
                return MISSING
        else:
            return MISSING
    return current


def is_reference(value: Any) -> bool:
    return isinstance(value, str) and REFERENCE_PATTERN.match(value) is not None


def resolve_reference(ref: Any, context: ExecutionContext) -> Any:
    """
    Resolve a reference against the context.

    Returns the literal value unchanged when `ref` is not a reference.
    """
    if not isinstance(ref, str):
        return ref
    match = REFERENCE_PATTERN.match(ref)
    if not match:
        return ref

    source, path = match.groups()

    if source == INPUT_SOURCE:
        return get_path_value(context.input_data, path)

    if source == VARIABLE_SOURCE:
        return get_path_value(context.variables, path)

    if not context.has_output(source):
        return MISSING
    return get_path_value(context.node_outputs[source], path)


def resolve_inputs(inputs: Iterable, context: ExecutionContext) -> Dict[str, Any]:
    """
    Resolve the declared inputs of a service node.

    Each input's `source` is resolved; when it yields nothing the input's
    default is used. Inputs with neither are left out.
    """
    resolved: Dict[str, Any] = {}

    for node_input in inputs:
        value = MISSING
        if node_input.source:
            value = resolve_reference(node_input.source, context)
        if value is MISSING and node_input.has_default:
            value = node_input.default
        if value is not MISSING and node_input.key:
            resolved[node_input.key] = value

    return resolved


def missing_required(inputs: Iterable, resolved: Dict[str, Any]) -> list:
    """Names of required inputs that did not resolve."""
    return [i.key for i in inputs if i.required and i.key not in resolved]
