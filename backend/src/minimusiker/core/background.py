"""Detached side effects whose failures must never fail the request."""

import asyncio
from typing import Any, Awaitable, Callable, Optional, Set

from fastapi import BackgroundTasks
from loguru import logger

# Strong references so the event loop does not garbage collect running tasks
_pending: Set[asyncio.Task] = set()


async def _run_logged(
    label: str, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any
) -> None:
    try:
        await func(*args, **kwargs)
        logger.debug(f"Background task '{label}' finished")
    except Exception as e:
        logger.exception(f"Background task '{label}' failed: {e}")


def fire_and_forget(
    background_tasks: Optional[BackgroundTasks],
    func: Callable[..., Awaitable[Any]],
    *args: Any,
    label: Optional[str] = None,
    **kwargs: Any,
) -> None:
    """Schedule ``func`` without awaiting its outcome.

    With ``background_tasks`` the call runs after the response is sent
    (the FastAPI way); otherwise it is started on the running loop as a
    detached task. Either way exceptions are logged and dropped.

    Args:
        background_tasks: Request-scoped task list, or None outside a route.
        func: Coroutine function to run.
        *args: Positional arguments for ``func``.
        label: Name used in log lines, defaults to the function name.
        **kwargs: Keyword arguments for ``func``.
    """
    name = label or getattr(func, "__name__", "task")
    if background_tasks is not None:
        background_tasks.add_task(_run_logged, name, func, *args, **kwargs)
        return

    task = asyncio.get_running_loop().create_task(
        _run_logged(name, func, *args, **kwargs)
    )
    _pending.add(task)
    task.add_done_callback(_pending.discard)
