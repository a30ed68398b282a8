"""Call sync or async user callables uniformly.

Route handlers, remote functions, hooks and views may each be ``def``
or ``async def``. The sync/async check lives here and nowhere else.
"""

import inspect
from collections.abc import Callable
from typing import Any


async def invoke(handler: Any, *args: Any, **kwargs: Any) -> Any:
    """Call *handler* and await the result if it is awaitable."""
    result = handler(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result


def positional_arity(func: Callable[..., Any]) -> int | None:
    """How many positional arguments *func* accepts.

    ``None`` means unbounded (``*args``) or not introspectable.
    """
    try:
        sig = inspect.signature(func)
    except (TypeError, ValueError):
        return None
    count = 0
    for param in sig.parameters.values():
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return None
        if param.kind in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ):
            count += 1
    return count


async def invoke_with(func: Callable[..., Any], *args: Any) -> Any:
    """Invoke *func* with as many leading *args* as it accepts."""
    arity = positional_arity(func)
    return await invoke(func, *(args if arity is None else args[:arity]))
