"""
Run blocking blob store calls off the event loop, with a deadline
"""
import asyncio
import logging
from typing import Any, Callable, TypeVar

from ..core.exceptions import StoreIOError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_bounded(
    func: Callable[..., T],
    *args: Any,
    timeout: float,
    operation: str,
    key: str,
) -> T:
    """
    Submit func(*args) to the default thread pool and wait at most `timeout` seconds.

    The event loop stays free while the store call blocks. If the deadline
    passes, the caller gets a StoreIOError; the worker thread itself cannot be
    interrupted, which is why the adapters also set socket timeouts.
    """
    loop = asyncio.get_running_loop()
    try:
        return await asyncio.wait_for(loop.run_in_executor(None, func, *args), timeout)
    except asyncio.TimeoutError as e:
        logger.error(f"Store {operation} timed out after {timeout}s for {key}")
        raise StoreIOError(operation, key, e) from e
