"""
timing.py — Stage timing policies for the simulated model warm-up.

The LOADING_MODELS stage performs no computation; it pauses twice so the
dashboard shows a multi-phase progress signal. Production uses fixed
pauses from settings, tests inject NoDelayTiming.
"""

import asyncio
from typing import Protocol


class StageTiming(Protocol):
    async def pause(self, step: int) -> None:
        """Suspend before warm-up step `step` (1-based)."""
        ...


class FixedDelayTiming:
    def __init__(self, delay_s: float) -> None:
        self.delay_s = delay_s

    async def pause(self, step: int) -> None:
        await asyncio.sleep(self.delay_s)


class NoDelayTiming:
    async def pause(self, step: int) -> None:
        # Still yield once so interleavings stay the same as in production.
        await asyncio.sleep(0)
