"""
Fire-and-forget work scheduled from request handlers.

Owner notifications for a new change order and the client's "timeline is
ready" email are sent after the request has already succeeded. A failed
send must not turn that request into an error, so each task logs its own
failure (with traceback) and resolves to ``None``.

Scheduled tasks stay in ``_pending`` until they finish; the event loop only
keeps weak references to tasks.
"""

import asyncio
import logging
from typing import Any, Awaitable, List, Set

logger = logging.getLogger(__name__)

_pending: Set[asyncio.Task] = set()


async def _run_logged(work: Awaitable[Any], task_name: str) -> Any:
    try:
        result = await work
    except Exception:
        logger.exception(f"Background task {task_name} failed")
        return None
    logger.info(f"Background task {task_name} finished")
    return result


def schedule(work: Awaitable[Any], task_name: str) -> asyncio.Task:
    """
    Run ``work`` without waiting for it.

    ``task_name`` names the notification in logs, e.g.
    ``schedule(sender.send(owner.email, ...), f"email-change-order-{change_order.id}")``.
    """
    task = asyncio.create_task(_run_logged(work, task_name), name=task_name)
    _pending.add(task)
    task.add_done_callback(_pending.discard)
    logger.debug(f"Scheduled {task_name} ({len(_pending)} pending)")
    return task


async def drain_background_tasks() -> List[Any]:
    """Wait for every pending task; used at shutdown and in tests."""
    if not _pending:
        return []
    return await asyncio.gather(*list(_pending))
