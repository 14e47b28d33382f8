"""Run-scoped cancellation shared by the pipeline stages."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from .errors import RunCancelled

T = TypeVar("T")


async def race_cancel(aw: Awaitable[T], cancel: asyncio.Event | None) -> T:
    """Await ``aw`` unless ``cancel`` fires first.

    The pending work is cancelled and :class:`RunCancelled` raised when the
    event wins. With no event this is a plain ``await``.
    """
    if cancel is None:
        return await aw
    task = asyncio.ensure_future(aw)
    waiter = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        waiter.cancel()
        if not task.done():
            task.cancel()
    if cancel.is_set() or not task.done():
        raise RunCancelled("cancelled")
    return task.result()
