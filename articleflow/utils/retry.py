from __future__ import annotations

import asyncio
import random


def compute_backoff(attempt: int, base: float = 2.0, jitter: float = 0.5) -> float:
    """Compute exponential backoff with jitter."""
    delay = base ** attempt
    return delay + random.uniform(0, jitter)


async def schedule_retry(attempt: int, base: float = 2.0) -> None:
    """Sleep for computed backoff delay before retrying."""
    delay = compute_backoff(attempt, base=base)
    await asyncio.sleep(delay)
