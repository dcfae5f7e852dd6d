"""Route compilation and matching."""

from openapi_db.routing.matcher import compile_route, match_route, template_strings, uses_auth
from openapi_db.routing.params import coerce_path, coerce_query, convert_param
from openapi_db.routing.route import HTTP_METHODS, CompiledRoute, Parameter, RouteMatch, XDb

__all__ = [
    "HTTP_METHODS",
    "CompiledRoute",
    "Parameter",
    "RouteMatch",
    "XDb",
    "coerce_path",
    "coerce_query",
    "compile_route",
    "convert_param",
    "match_route",
    "template_strings",
    "uses_auth",
]
