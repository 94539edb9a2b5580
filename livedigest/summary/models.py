"""Data models for per-source summary state."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SummaryPhase(str, Enum):
    EMPTY = "empty"
    HAS_SUMMARY = "has_summary"


class MergeStatus(str, Enum):
    """Outcome of folding one transcript (or one batch) into a source."""

    MERGED = "merged"  # summary replaced
    DEFERRED = "deferred"  # appended to the pending batch
    SKIPPED = "skipped"  # nothing to summarize
    FAILED = "failed"  # summarizer error; state untouched


@dataclass(frozen=True)
class SourceState:
    """Running summary for one source key.

    Instances are immutable; every write replaces the whole record, so readers
    never observe a half-updated summary.
    """

    key: str
    running_summary: str = ""
    last_activity: datetime = field(default_factory=utcnow)
    pending_transcript: str = ""

    @property
    def phase(self) -> SummaryPhase:
        return SummaryPhase.HAS_SUMMARY if self.running_summary else SummaryPhase.EMPTY

    def with_summary(self, summary: str, at: datetime) -> SourceState:
        return replace(self, running_summary=summary, last_activity=at, pending_transcript="")

    def cleared(self) -> SourceState:
        return replace(self, running_summary="")


@dataclass
class MergeResult:
    status: MergeStatus
    summary: str
    error: str | None = None
    notified: bool = False
