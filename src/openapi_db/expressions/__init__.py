"""The ``${{ ... }}`` expression language: parser, evaluator, built-ins."""

from openapi_db.expressions.evaluator import (
    NAMESPACES,
    Context,
    evaluate_expression,
    evaluate_function,
    resolve_variable,
    validate_expression,
)
from openapi_db.expressions.functions import FUNCTIONS
from openapi_db.expressions.parser import (
    CLOSE_DELIMITER,
    OPEN_DELIMITER,
    ExpressionRef,
    FunctionCall,
    Literal,
    Variable,
    is_function_call,
    parse_expressions,
    parse_inner,
)

__all__ = [
    "CLOSE_DELIMITER",
    "FUNCTIONS",
    "NAMESPACES",
    "OPEN_DELIMITER",
    "Context",
    "ExpressionRef",
    "FunctionCall",
    "Literal",
    "Variable",
    "evaluate_expression",
    "evaluate_function",
    "is_function_call",
    "parse_expressions",
    "parse_inner",
    "resolve_variable",
    "validate_expression",
]
