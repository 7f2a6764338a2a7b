"""Detect when a scanner has finished writing a file."""
import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from pathlib import Path

from .exceptions import FileVanishedError, StabilityTimeoutError

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


async def wait_until_stable(
    path: Path,
    threshold: float = 10.0,
    poll_interval: float = 1.0,
    max_wait: float = 300.0,
    clock: Clock = time.monotonic,
    sleep: Sleeper = asyncio.sleep
) -> int:
    """Block until ``path`` has kept the same non-zero size for ``threshold`` seconds.

    The size is sampled every ``poll_interval``; any change restarts the
    stable window, so bursty writers are waited out as well as slow ones.

    Returns:
        The settled file size in bytes

    Raises:
        FileVanishedError: If the file disappears while waiting
        StabilityTimeoutError: If the file is still changing (or empty) after ``max_wait``
    """
    started = clock()
    last_size = -1
    stable_since = started

    while True:
        try:
            size = path.stat().st_size
        except FileNotFoundError as exc:
            raise FileVanishedError(path, exc) from exc

        now = clock()
        if size != last_size:
            if last_size >= 0:
                logger.debug(f"[STABILITY] {path.name} - size changed {last_size} -> {size}")
            last_size = size
            stable_since = now
        elif size > 0 and now - stable_since >= threshold:
            logger.debug(f"[STABILITY] {path.name} - stable at {size} bytes")
            return size

        elapsed = now - started
        if elapsed >= max_wait:
            raise StabilityTimeoutError(path, elapsed, last_size)

        await sleep(poll_interval)
