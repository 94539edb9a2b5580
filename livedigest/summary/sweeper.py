"""Background timers over the summary store: stale-state sweep and batch flush."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any

from livedigest.summary.state_machine import SummaryStateMachine

logger = logging.getLogger(__name__)


async def run_periodic(period: float, action: Callable[[], Awaitable[Any]], name: str) -> None:
    """Run ``action`` every ``period`` seconds until cancelled.

    A failing pass is logged and the next tick still runs.
    """
    while True:
        await asyncio.sleep(period)
        try:
            await action()
        except Exception:
            logger.exception("%s pass failed", name)


class StaleStateSweeper:
    """Clear summaries whose source has been idle for ``threshold``.

    Keys are visited one at a time, each under its own lock, so a sweep never
    races an in-flight merge. The key itself is kept and no webhook is sent.
    """

    def __init__(
        self,
        machine: SummaryStateMachine,
        threshold: timedelta = timedelta(hours=1),
        period: float = 60.0,
    ) -> None:
        self.machine = machine
        self.threshold = threshold
        self.period = period

    async def sweep_once(self) -> list[str]:
        cleared: list[str] = []
        for state in await self.machine.states():
            if await self.machine.reset(state.key, older_than=self.threshold):
                cleared.append(state.key)
        if cleared:
            logger.info("Cleared idle summaries: %s", ", ".join(cleared))
        return cleared

    async def run(self) -> None:
        await run_periodic(self.period, self.sweep_once, "sweep")


class BatchFlusher:
    """Summarize pending transcripts for every source on a fixed period."""

    def __init__(self, machine: SummaryStateMachine, period: float = 60.0) -> None:
        self.machine = machine
        self.period = period

    async def run(self) -> None:
        await run_periodic(self.period, self.machine.flush_all, "batch flush")
