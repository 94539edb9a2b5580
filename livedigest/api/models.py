"""Pydantic request/response schemas for the collection API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from livedigest.summary.models import MergeStatus, SourceState, SummaryPhase


class UploadResponse(BaseModel):
    """Response body for the /api/upload endpoint."""

    source_key: str
    status: MergeStatus
    transcript: str
    summary: str


class SourceStateResponse(BaseModel):
    """Current summary state for one source key."""

    source_key: str
    phase: SummaryPhase
    summary: str
    last_activity: datetime
    pending_transcript: str = ""

    @classmethod
    def from_state(cls, state: SourceState) -> SourceStateResponse:
        return cls(
            source_key=state.key,
            phase=state.phase,
            summary=state.running_summary,
            last_activity=state.last_activity,
            pending_transcript=state.pending_transcript,
        )
