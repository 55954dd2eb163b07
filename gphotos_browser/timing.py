"""Cancellable sleeps shared by the watcher and the iteration driver."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional

from .errors import RunCancelledError

SleepFunc = Callable[[float], Awaitable[Any]]


def check_cancelled(cancel_event: Optional[asyncio.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise RunCancelledError("run cancelled by operator")


async def pause(
    seconds: float,
    cancel_event: Optional[asyncio.Event] = None,
    sleep: Optional[SleepFunc] = None,
) -> None:
    """Sleep for ``seconds``, waking early with RunCancelledError if cancelled.

    An injected ``sleep`` replaces the wall-clock wait; the cancel event is
    then only checked on both sides of it.
    """
    check_cancelled(cancel_event)
    if sleep is not None:
        await sleep(float(seconds))
    elif cancel_event is None:
        await asyncio.sleep(float(seconds))
    else:
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=float(seconds))
        except asyncio.TimeoutError:
            pass
    check_cancelled(cancel_event)
