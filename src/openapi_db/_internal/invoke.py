"""Calling the user's auth resolver.

``RouterConfig.auth`` may be a plain function or a coroutine function,
and the Router awaits either the same way::

    claims = await invoke(config.auth, request)   # Mapping, or None when anonymous
"""

import inspect
from typing import Any


async def invoke(resolver: Any, *args: Any) -> Any:
    """Call *resolver*, awaiting its result when it returns an awaitable."""
    outcome = resolver(*args)
    return await outcome if inspect.isawaitable(outcome) else outcome
