"""Response shaping: column renaming and JSON Pointer extraction.

``x-db.fields`` maps API field names to column names; shaping renames in
the other direction. ``x-db.returns`` is an RFC 6901 JSON Pointer into the
row-set viewed as an array::

    ""          the whole row-set
    "/0"        the first row
    "/0/total"  the ``total`` field of the first row
"""

from collections.abc import Mapping, Sequence
from typing import Any


def apply_field_mapping(
    rows: Sequence[Mapping[str, Any]],
    fields: Mapping[str, str] | None = None,
) -> list[dict[str, Any]]:
    """Rename each row's keys from column names to API field names.

    Columns absent from *fields* keep their names.
    """
    if not fields:
        return [dict(row) for row in rows]
    reverse = {column: api_name for api_name, column in fields.items()}
    return [{reverse.get(key, key): value for key, value in row.items()} for row in rows]


def _unescape(token: str) -> str:
    # ~1 first so "~01" decodes to "~1", not "/"
    return token.replace("~1", "/").replace("~0", "~")


def pointer_tokens(pointer: str) -> list[str]:
    """Split a JSON Pointer into unescaped reference tokens."""
    if not pointer:
        return []
    return [_unescape(token) for token in pointer.split("/")[1:]]


def resolve_pointer(value: Any, pointer: str) -> Any:
    """Resolve *pointer* against *value*.

    Walking off the end of an array or into a missing key yields ``None``.
    """
    current = value
    for token in pointer_tokens(pointer):
        if isinstance(current, Mapping):
            if token not in current:
                return None
            current = current[token]
        elif isinstance(current, Sequence) and not isinstance(current, str | bytes):
            if not token.isdigit() or (len(token) > 1 and token.startswith("0")):
                return None
            index = int(token)
            if index >= len(current):
                return None
            current = current[index]
        else:
            return None
    return current


def shape_response(
    rows: Sequence[Mapping[str, Any]],
    fields: Mapping[str, str] | None = None,
    returns: str | None = None,
) -> Any:
    """Apply field mapping, then pointer extraction if *returns* is set."""
    mapped = apply_field_mapping(rows, fields)
    if returns is None:
        return mapped
    return resolve_pointer(mapped, returns)
