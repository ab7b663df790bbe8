"""HTTP middleware for request correlation.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from etags.core.config import settings
from etags.core.logging import clear_request_id, set_request_id


async def request_id_middleware(request: Request, call_next) -> Response:
    """Tag each request/response pair with a correlation id and duration.

    Reuses the caller's request id header when present, otherwise generates
    a UUID4. The id is stored in contextvars for the lifetime of the request,
    so admission-layer logs (CSRF rejections, rate limit decisions) carry it
    without passing it around.

    Side Effects:
        - Echoes the request id header on the response
        - Adds X-Request-Duration-ms to the response
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    # Outlives the contextvar for the outer 500 handler
    request.state.request_id = request_id
    started = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    elapsed_ms = (time.perf_counter() - started) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{elapsed_ms:.2f}")
    return response
