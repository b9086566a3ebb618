"""Run async routing code from synchronous Flask views.

Vendor SDK clients keep connection pools tied to the loop that opened
them, so every request is driven on one long-lived loop running in a
daemon thread instead of a fresh loop per call.
"""

import asyncio
import logging
import threading
from typing import Any, AsyncIterator, Callable, Iterator, Optional

logger = logging.getLogger(__name__)

_loop: Optional[asyncio.AbstractEventLoop] = None
_loop_lock = threading.Lock()


def get_loop() -> asyncio.AbstractEventLoop:
    """Return the shared background loop, starting it on first use."""
    global _loop
    with _loop_lock:
        if _loop is None or _loop.is_closed():
            loop = asyncio.new_event_loop()
            thread = threading.Thread(
                target=loop.run_forever, name="hylo-async-bridge", daemon=True
            )
            thread.start()
            _loop = loop
        return _loop


def run_async(coro) -> Any:
    """Run async function in sync context."""
    return asyncio.run_coroutine_threadsafe(coro, get_loop()).result()


async def _new_event() -> asyncio.Event:
    return asyncio.Event()


def iter_async(
    factory: Callable[[asyncio.Event], AsyncIterator[Any]],
) -> Iterator[Any]:
    """Drive an async generator from a sync generator.

    ``factory`` receives a cancellation event and returns the async
    generator. Closing the sync iterator (client disconnect) sets the event
    and closes the async generator so its cleanup runs.
    """
    loop = get_loop()
    cancel_event = run_async(_new_event())
    agen = factory(cancel_event)
    finished = False
    try:
        while True:
            try:
                item = asyncio.run_coroutine_threadsafe(agen.__anext__(), loop).result()
            except StopAsyncIteration:
                finished = True
                return
            yield item
    finally:
        if not finished:
            logger.info("Event stream closed early; cancelling")
            loop.call_soon_threadsafe(cancel_event.set)
        asyncio.run_coroutine_threadsafe(agen.aclose(), loop).result()
