"""
Call sync or async user callables uniformly.

Handlers and middlewares may be plain functions or coroutines:

    def handler(ctx):             async def handler(ctx):
        return ok(ctx.payload)        data = await fetch(ctx.path)
                                      return ok(data)

Everything that calls user code goes through ``invoke`` so the
sync/async check lives in one place.
"""

import inspect
from typing import Any


async def invoke(func: Any, *args: Any, **kwargs: Any) -> Any:
    """Call ``func`` and await the result if it is awaitable."""
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
