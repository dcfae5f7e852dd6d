"""Built-in expression functions.

The set is closed: ``default``, ``now`` and ``uuid``. ``FUNCTIONS`` is a
read-only mapping, so nothing can register more at runtime.
"""

import uuid
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any


def _default(value: Any = None, fallback: Any = None, *_: Any) -> Any:
    # Only None falls through; 0, False and "" are real values.
    if value is None:
        return fallback
    return value


def _now(*_: Any) -> datetime:
    return datetime.now(UTC)


def _uuid(*_: Any) -> str:
    return str(uuid.uuid4())


FUNCTIONS: Mapping[str, Callable[..., Any]] = MappingProxyType(
    {
        "default": _default,
        "now": _now,
        "uuid": _uuid,
    }
)
