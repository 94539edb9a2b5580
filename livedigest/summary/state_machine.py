"""Per-source summary state machine: EMPTY <-> HAS_SUMMARY."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Protocol

from livedigest.config import SystemConfig
from livedigest.pipeline_config import SummaryPolicy
from livedigest.summary.models import MergeResult, MergeStatus, SourceState, utcnow
from livedigest.summary.prompts import build_prompt
from livedigest.summary.store import SummaryStore
from livedigest.summary.summarizer import Summarizer, SummarizerError

logger = logging.getLogger(__name__)


class UnknownSourceError(KeyError):
    """Raised for a source key with no configured prompts."""


class Notifier(Protocol):
    async def notify(self, summary: str) -> bool: ...


class KeyedLocks:
    """One lazily created asyncio.Lock per source key."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def __call__(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock


class SummaryStateMachine:
    """Fold transcripts into each source's running summary.

    Every read-modify-write of a source (read summary, build prompt, call the
    summarizer, write back, notify) happens under that source's lock, so two
    uploads for the same source cannot clobber each other while different
    sources proceed independently.

    With ``SummaryPolicy.IMMEDIATE`` each transcript is summarized as it
    arrives. With ``SummaryPolicy.BATCHED`` transcripts are appended to a
    pending buffer and summarized together by :meth:`flush`.
    """

    def __init__(
        self,
        store: SummaryStore,
        summarizer: Summarizer,
        notifier: Notifier,
        systems: Iterable[SystemConfig],
        *,
        policy: SummaryPolicy = SummaryPolicy.IMMEDIATE,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.summarizer = summarizer
        self.notifier = notifier
        self.systems = {system.key: system for system in systems}
        self.policy = policy
        self.clock = clock
        self.lock = KeyedLocks()

    def knows(self, key: str) -> bool:
        return key in self.systems

    async def bootstrap(self) -> None:
        """Make sure every configured source has a state record."""
        await self.store.bootstrap(self.systems)

    async def state(self, key: str) -> SourceState:
        return await self.store.get(key)

    async def states(self) -> list[SourceState]:
        return await self.store.all()

    async def ingest(self, key: str, transcript: str) -> MergeResult:
        """Apply one transcription result to ``key``.

        Raises:
            UnknownSourceError: ``key`` is not a configured source.
            StoreError: The state backend failed; state is unchanged.
        """
        system = self._system(key)
        transcript = transcript.strip()
        async with self.lock(key):
            state = await self.store.get(key)
            if not transcript:
                return MergeResult(MergeStatus.SKIPPED, state.running_summary)
            if self.policy is SummaryPolicy.BATCHED:
                pending = f"{state.pending_transcript}\n{transcript}" if state.pending_transcript else transcript
                await self.store.put(replace(state, pending_transcript=pending, last_activity=self.clock()))
                return MergeResult(MergeStatus.DEFERRED, state.running_summary)
            return await self._merge(system, state, transcript)

    async def flush(self, key: str) -> MergeResult:
        """Summarize the pending batch for ``key`` in one call.

        On failure the batch is discarded and the previous summary kept.
        """
        system = self._system(key)
        async with self.lock(key):
            state = await self.store.get(key)
            if not state.pending_transcript:
                return MergeResult(MergeStatus.SKIPPED, state.running_summary)
            result = await self._merge(system, state, state.pending_transcript)
            if result.status is MergeStatus.FAILED:
                await self.store.put(replace(state, pending_transcript=""))
            return result

    async def flush_all(self) -> dict[str, MergeResult]:
        results: dict[str, MergeResult] = {}
        for key in self.systems:
            results[key] = await self.flush(key)
        return results

    async def reset(self, key: str, *, older_than: timedelta | None = None) -> bool:
        """Force ``key`` back to EMPTY without notifying.

        With ``older_than``, only clear when the last activity is at least that
        old. Returns True if a summary was cleared.
        """
        async with self.lock(key):
            state = await self.store.get(key)
            if not state.running_summary:
                return False
            if older_than is not None and self.clock() - state.last_activity < older_than:
                return False
            await self.store.put(state.cleared())
            return True

    async def _merge(self, system: SystemConfig, state: SourceState, transcript: str) -> MergeResult:
        prompt = build_prompt(system, state.running_summary, transcript)
        try:
            summary = await self.summarizer.summarize(prompt)
        except SummarizerError as exc:
            logger.warning("Summary for %s not updated: %s", state.key, exc)
            return MergeResult(MergeStatus.FAILED, state.running_summary, error=str(exc))

        await self.store.put(state.with_summary(summary, self.clock()))
        notified = await self.notifier.notify(summary)
        logger.info("Summary for %s updated (%d chars)", state.key, len(summary))
        return MergeResult(MergeStatus.MERGED, summary, notified=notified)

    def _system(self, key: str) -> SystemConfig:
        try:
            return self.systems[key]
        except KeyError:
            raise UnknownSourceError(key) from None
