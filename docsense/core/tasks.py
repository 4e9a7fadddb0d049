"""
Fan-out/join helper for concurrent oracle calls.
"""

import asyncio
from typing import Any, Awaitable


async def gather_all(*aws: Awaitable[Any]) -> list[Any]:
    """
    Run awaitables concurrently and wait for all of them.

    If any one fails (or the caller is cancelled), the remaining tasks are
    cancelled and the first error is re-raised. Results of siblings are discarded.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        # Let cancelled siblings unwind before propagating
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
