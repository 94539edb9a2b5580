"""Long-lived service objects and their background tasks."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import timedelta

from livedigest.config import Settings
from livedigest.pipeline_config import SummaryPolicy
from livedigest.summary.notify import WebhookNotifier
from livedigest.summary.state_machine import SummaryStateMachine
from livedigest.summary.store import (
    InMemorySummaryStore,
    SummaryStore,
    SupabaseSummaryStore,
    get_supabase_client,
)
from livedigest.summary.summarizer import build_summarizer
from livedigest.summary.sweeper import BatchFlusher, StaleStateSweeper
from livedigest.transcription.engine import TranscriptionEngine, load_whisper_model

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    engine: TranscriptionEngine
    machine: SummaryStateMachine
    sweeper: StaleStateSweeper
    flusher: BatchFlusher | None = None
    _tasks: list[asyncio.Task[None]] = field(default_factory=list)

    async def start(self) -> None:
        """Load the model, seed configured sources and start the timers."""
        await asyncio.to_thread(self.engine.load)
        await self.machine.bootstrap()
        self._tasks.append(asyncio.create_task(self.sweeper.run(), name="sweeper"))
        if self.flusher is not None:
            self._tasks.append(asyncio.create_task(self.flusher.run(), name="batch-flusher"))

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        for client in (self.machine.summarizer, self.machine.notifier):
            aclose = getattr(client, "aclose", None)
            if aclose is not None:
                await aclose()


def build_store(settings: Settings) -> SummaryStore:
    if settings.supabase_url:
        logger.info("Persisting summary state to Supabase")
        return SupabaseSummaryStore(get_supabase_client(settings.supabase_url, settings.supabase_key))
    return InMemorySummaryStore()


def build_runtime(settings: Settings) -> Runtime:
    engine = TranscriptionEngine(
        lambda: load_whisper_model(
            settings.whisper_model,
            device=settings.whisper_device,
            compute_type=settings.whisper_compute_type,
        ),
        language=settings.whisper_language or None,
    )
    notifier = WebhookNotifier(
        settings.webhook_url,
        settings.webhook_template,
        content_type=settings.webhook_content_type,
        timeout=settings.webhook_timeout,
    )
    machine = SummaryStateMachine(
        build_store(settings),
        build_summarizer(settings),
        notifier,
        settings.systems,
        policy=settings.summary_policy,
    )
    sweeper = StaleStateSweeper(
        machine,
        threshold=timedelta(seconds=settings.inactivity_threshold_seconds),
        period=settings.sweep_interval_seconds,
    )
    flusher = None
    if settings.summary_policy is SummaryPolicy.BATCHED:
        flusher = BatchFlusher(machine, period=settings.batch_interval_seconds)
    logger.info(
        "Summary policy %s for sources: %s",
        settings.summary_policy.value,
        ", ".join(machine.systems) or "(none)",
    )
    return Runtime(engine=engine, machine=machine, sweeper=sweeper, flusher=flusher)
