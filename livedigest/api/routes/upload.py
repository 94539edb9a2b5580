"""Upload endpoint: validate an audio chunk, transcribe it, fold it into the summary."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from livedigest.api.deps import get_runtime
from livedigest.api.models import UploadResponse
from livedigest.audio import AudioFormatError, decode_samples, read_format
from livedigest.runtime import Runtime
from livedigest.summary.models import MergeStatus
from livedigest.summary.store import StoreError
from livedigest.transcription.engine import TranscriptionError

logger = logging.getLogger(__name__)

router = APIRouter()

# 50 MB upload limit; a 5 minute mono 16 kHz 16-bit chunk is under 10 MB
MAX_UPLOAD_BYTES = 50 * 1024 * 1024


@router.post("/api/upload", response_model=UploadResponse)
async def upload_audio(
    runtime: Annotated[Runtime, Depends(get_runtime)],
    file: Annotated[UploadFile, File(...)],
    system_key: Annotated[str, Form()] = "",
) -> UploadResponse:
    """Accept one WAV chunk for a source and update that source's summary.

    Input problems (oversized payload, missing or unknown ``system_key``,
    unreadable WAV, anything other than mono 16 kHz) are rejected before the
    speech model is touched and leave all state as it was.

    Upstream failures map to server errors: 500 for transcription or state
    storage, 502 when the completion API fails. In both cases the source's
    previous summary is kept and this chunk's contribution is lost.
    """
    raw = await file.read()
    if len(raw) > MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {MAX_UPLOAD_BYTES // (1024 * 1024)} MB.",
        )

    key = system_key.strip()
    if not key:
        raise HTTPException(status_code=400, detail="Missing system_key")
    if not runtime.machine.knows(key):
        raise HTTPException(status_code=400, detail=f"Unknown system_key: {key}")

    try:
        fmt = read_format(raw)
        if not fmt.is_model_format:
            raise HTTPException(
                status_code=400,
                detail=(
                    f"wav must be mono 16kHz (got {fmt.channels} ch @ {fmt.sample_rate} Hz)"
                ),
            )
        samples = decode_samples(raw, fmt)
    except AudioFormatError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    try:
        transcript = await runtime.engine.transcribe(samples)
    except TranscriptionError as exc:
        raise HTTPException(status_code=500, detail=f"Transcription failed: {exc}") from exc

    try:
        result = await runtime.machine.ingest(key, transcript)
    except StoreError as exc:
        logger.error("State update for %s failed: %s", key, exc)
        raise HTTPException(status_code=500, detail="Summary state unavailable") from exc

    if result.status is MergeStatus.FAILED:
        raise HTTPException(status_code=502, detail=f"Summarization failed: {result.error}")

    return UploadResponse(
        source_key=key,
        status=result.status,
        transcript=transcript,
        summary=result.summary,
    )
