"""Request and response types."""

from openapi_db.http.headers import Headers
from openapi_db.http.query import QueryParams
from openapi_db.http.request import UNSET, Request
from openapi_db.http.response import RouterResponse

__all__ = ["UNSET", "Headers", "QueryParams", "Request", "RouterResponse"]
