from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from livedigest.api.routes.sources import router as sources_router
from livedigest.api.routes.upload import router as upload_router
from livedigest.config import settings
from livedigest.runtime import Runtime, build_runtime


def create_app(runtime: Runtime | None = None) -> FastAPI:
    """Build the collection API.

    The runtime (speech model, summary state, background timers) is built from
    settings at startup unless one is passed in.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        rt = runtime or build_runtime(settings)
        app.state.runtime = rt
        await rt.start()
        try:
            yield
        finally:
            await rt.stop()

    app = FastAPI(
        title="Live Digest API",
        description="Audio chunk collection with incremental per-source summaries",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(upload_router)
    app.include_router(sources_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy"}

    return app


app = create_app()
