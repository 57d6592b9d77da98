"""Shared bounded threadpool helpers for blocking terminal IO."""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any

_BLOCKING_IO_EXECUTOR = ThreadPoolExecutor(
    max_workers=4,
    thread_name_prefix="credsetup-io",
)


async def run_blocking_io(fn: Any, /, *args: Any, **kwargs: Any) -> Any:
    """Run a blocking callable on the shared IO executor."""
    loop = asyncio.get_running_loop()
    call = partial(fn, *args, **kwargs)
    return await loop.run_in_executor(_BLOCKING_IO_EXECUTOR, call)
