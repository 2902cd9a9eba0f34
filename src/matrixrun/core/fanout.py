"""Concurrent fan-out shared by the refresh, cancel and fetch passes."""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

T = TypeVar("T")


async def gather_or_cancel(*aws: Awaitable[T]) -> list[T]:
    """Run ``aws`` concurrently and return their results in order.

    On the first failure every unfinished sibling is cancelled and awaited
    before the error propagates, so no task outlives the call.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
