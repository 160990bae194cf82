"""Request correlation and access logging for the edge.

Each request gets an id, taken from the configured header
(``LOG_REQUEST_ID_HEADER``) or generated. The id is bound to the logging
context while the request runs, echoed back to the client and attached to
a single ``http.request`` access log line. Rate limited responses pass
through here too, so a 429 can be traced like any other response.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from clubscore.core.logging import clear_request_id, set_request_id

logger = logging.getLogger(__name__)

DURATION_HEADER = "X-Request-Duration-ms"


def resolve_request_id(request: Request, header_name: str) -> str:
    """Reuse a non-blank incoming id, otherwise mint a UUID4."""

    incoming = (request.headers.get(header_name) or "").strip()
    return incoming or str(uuid.uuid4())


async def request_id_middleware(request: Request, call_next) -> Response:
    """Attach a request id to logs and to the response.

    Side Effects:
        - Sets request_id in contextvars for the duration of the request
        - Adds the request id header and X-Request-Duration-ms to the response
        - Logs one ``http.request`` line per response
    """

    header_name = request.app.state.settings.log.request_id_header
    request_id = resolve_request_id(request, header_name)
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "http.request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault(DURATION_HEADER, f"{duration_ms:.2f}")
    return response
