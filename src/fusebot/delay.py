"""
Delay scheduler — randomized pause before the message goes out.
"""

from __future__ import annotations

import asyncio
import logging
import random

logger = logging.getLogger(__name__)


def compute_delay(max_seconds: int, rng: random.Random | None = None) -> int:
    """Draw a delay uniformly from the inclusive range [0, max_seconds]."""
    if max_seconds < 0:
        raise ValueError(f"max_seconds must be >= 0, got {max_seconds}")
    if max_seconds == 0:
        return 0
    return (rng or random).randint(0, max_seconds)


async def suspend(seconds: float) -> None:
    """Sleep without blocking the event loop."""
    if seconds <= 0:
        return
    logger.info("Waiting %d seconds before posting...", seconds)
    await asyncio.sleep(seconds)
