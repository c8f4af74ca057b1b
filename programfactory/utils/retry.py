"""Backoff between attempts against the completion service."""

from __future__ import annotations

import asyncio
import logging
import random

logger = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 30.0


def compute_backoff(attempt: int, base: float = 1.5, jitter: float = 0.5) -> float:
    """Delay before retry number ``attempt`` (0-based), capped at MAX_BACKOFF_SECONDS."""
    return min(base ** attempt + random.uniform(0, jitter), MAX_BACKOFF_SECONDS)


async def schedule_retry(attempt: int) -> None:
    delay = compute_backoff(attempt)
    logger.debug(f"Next completion attempt in {delay:.1f}s")
    await asyncio.sleep(delay)
