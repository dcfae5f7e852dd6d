"""Expression evaluation against a per-request ``Context``.

``resolve_variable`` and ``evaluate_function`` are the primitives handed to
adapters. Both take the inner text of one ``${{ ... }}`` reference, parse it
into a node tree once, and walk that tree.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from openapi_db.errors import InvalidVariable, UnknownFunction
from openapi_db.expressions.functions import FUNCTIONS
from openapi_db.expressions.parser import (
    FunctionCall,
    Literal,
    Node,
    Variable,
    is_function_call,
    parse_function,
    parse_variable,
    walk,
)

NAMESPACES: frozenset[str] = frozenset({"path", "query", "body", "auth"})


@dataclass(frozen=True, slots=True)
class Context:
    """Request data addressable from expressions.

    Built fresh for every request and never mutated. ``auth`` stays
    ``None`` unless the route references it and the resolver returned a
    mapping.
    """

    path: Mapping[str, Any] = field(default_factory=dict)
    query: Mapping[str, Any] = field(default_factory=dict)
    body: Any = None
    auth: Mapping[str, Any] | None = None


def resolve_variable(ref: str, context: Context) -> Any:
    """Resolve ``namespace.seg1.seg2`` against *context*.

    Missing keys anywhere along the chain resolve to ``None``. A resolved
    ``query`` value that is a string containing a comma becomes a list of
    strings.
    """
    return _resolve(parse_variable(ref), context)


def evaluate_function(expr: str, context: Context) -> Any:
    """Evaluate ``name(arg, ...)``, evaluating nested arguments first.

    Raises ``UnknownFunction`` if *expr* is not a call or names a function
    outside the built-in set.
    """
    node = parse_function(expr)
    if node is None:
        msg = f"Invalid function expression: {expr.strip()}"
        raise UnknownFunction(msg)
    return _call(node, context)


def evaluate_expression(inner: str, context: Context) -> Any:
    """Evaluate one reference, dispatching on the function-call heuristic."""
    if is_function_call(inner):
        return evaluate_function(inner, context)
    return resolve_variable(inner, context)


def validate_expression(inner: str) -> Node:
    """Parse *inner* and check every function name and namespace in it.

    Used at boot so authoring mistakes fail before traffic arrives.
    Returns the parsed node for further inspection.
    """
    node: Node
    if is_function_call(inner):
        call = parse_function(inner)
        if call is None:
            msg = f"Invalid function expression: {inner.strip()}"
            raise UnknownFunction(msg)
        node = call
    else:
        node = parse_variable(inner)
    for child in walk(node):
        if isinstance(child, FunctionCall) and child.name not in FUNCTIONS:
            msg = f"Unknown function: {child.name}()"
            raise UnknownFunction(msg)
        if isinstance(child, Variable) and child.namespace not in NAMESPACES:
            msg = (
                f"Unknown variable namespace {child.namespace!r} in {inner!r}. "
                f"Expected one of: {', '.join(sorted(NAMESPACES))}"
            )
            raise InvalidVariable(msg)
    return node


# -- Tree walking --


def _evaluate(node: Node, context: Context) -> Any:
    if isinstance(node, Literal):
        return node.value
    if isinstance(node, Variable):
        return _resolve(node, context)
    return _call(node, context)


def _call(node: FunctionCall, context: Context) -> Any:
    impl = FUNCTIONS.get(node.name)
    if impl is None:
        msg = f"Unknown function: {node.name}()"
        raise UnknownFunction(msg)
    args = [_evaluate(arg, context) for arg in node.args]
    return impl(*args)


def _resolve(variable: Variable, context: Context) -> Any:
    if variable.namespace not in NAMESPACES:
        return None

    value: Any = getattr(context, variable.namespace)
    for segment in variable.path:
        value = _lookup(value, segment)
        if value is None:
            return None

    if variable.namespace == "query" and isinstance(value, str) and "," in value:
        return value.split(",")
    return value


def _lookup(value: Any, segment: str) -> Any:
    """One step of property access: mapping key or sequence index."""
    if isinstance(value, Mapping):
        return value.get(segment)
    if isinstance(value, Sequence) and not isinstance(value, str | bytes) and segment.isdigit():
        index = int(segment)
        return value[index] if index < len(value) else None
    return None
