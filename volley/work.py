"""
Invocation of caller-supplied units of work.

A unit of work is a zero-argument callable. Coroutine functions are awaited
on the event loop; plain callables run in the default thread pool so that
blocking clients do not stall other scenarios or virtual users. A plain
callable may still return an awaitable, which is then awaited on the loop.
"""
from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable, Optional

from volley.models import Failure

Work = Callable[[], Any]


async def invoke(work: Work) -> Any:
    """Run one unit of work and return its value. Exceptions propagate."""
    if inspect.iscoroutinefunction(work):
        return await work()
    result = await asyncio.to_thread(work)
    if inspect.isawaitable(result):
        return await result
    return result


async def invoke_checked(work: Work) -> Optional[Failure]:
    """
    Run one unit of work, reporting failure as a value.

    Returns:
        None on success, otherwise the Failure (an exception raised by the
        work, or a Failure it returned).
    """
    try:
        value = await invoke(work)
    except Exception as exc:
        return Failure.from_exception(exc)
    if isinstance(value, Failure):
        return value
    return None
