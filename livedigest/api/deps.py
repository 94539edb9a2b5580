from __future__ import annotations

from fastapi import Request

from livedigest.runtime import Runtime


def get_runtime(request: Request) -> Runtime:
    """Return the service runtime attached to the app by its lifespan."""
    return request.app.state.runtime  # type: ignore[no-any-return]
