from __future__ import annotations

import logging
import time
import uuid
from typing import TYPE_CHECKING

from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

if TYPE_CHECKING:
    from fastapi import FastAPI, Request, Response
    from starlette.middleware.base import RequestResponseEndpoint

    from payflow.config import Settings

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-Id"
USER_ID_HEADER = "X-User-Id"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id, echo it on the response and log the outcome.

    A caller-supplied ``X-Request-Id`` is kept so a decision can be traced
    across services; otherwise a fresh one is generated.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            "%s %s -> %d in %.1fms [%s] user=%s",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
            request_id,
            request.headers.get(USER_ID_HEADER, "-"),
        )
        return response


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure application middleware. CORS is added last so it wraps everything."""
    app.add_middleware(RequestIdMiddleware)  # ty: ignore[invalid-argument-type]
    app.add_middleware(
        CORSMiddleware,  # ty: ignore[invalid-argument-type]
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        # Browsers must be allowed to send the acting user's id.
        allow_headers=["Content-Type", USER_ID_HEADER, REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER],
    )
