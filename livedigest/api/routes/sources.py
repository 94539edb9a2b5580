"""Source endpoints: read-only views of per-source summary state."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from livedigest.api.deps import get_runtime
from livedigest.api.models import SourceStateResponse
from livedigest.runtime import Runtime
from livedigest.summary.store import StoreError

router = APIRouter()


@router.get("/api/sources", response_model=list[SourceStateResponse])
async def list_sources(runtime: Annotated[Runtime, Depends(get_runtime)]) -> list[SourceStateResponse]:
    """List every known source with its current summary."""
    try:
        states = await runtime.machine.states()
    except StoreError as exc:
        raise HTTPException(status_code=500, detail="Summary state unavailable") from exc
    return [SourceStateResponse.from_state(s) for s in states]


@router.get("/api/sources/{source_key}", response_model=SourceStateResponse)
async def get_source(
    source_key: str,
    runtime: Annotated[Runtime, Depends(get_runtime)],
) -> SourceStateResponse:
    if not runtime.machine.knows(source_key):
        raise HTTPException(status_code=404, detail="Source not found")
    try:
        state = await runtime.machine.state(source_key)
    except StoreError as exc:
        raise HTTPException(status_code=500, detail="Summary state unavailable") from exc
    return SourceStateResponse.from_state(state)
