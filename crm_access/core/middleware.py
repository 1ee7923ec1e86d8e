"""Request tracing and CORS for the access API."""

import time
import uuid
import logging

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from crm_access.core.config import settings

logger = logging.getLogger("crm_access")

REQUEST_ID_HEADER = "X-Request-Id"
TIMING_HEADER = "X-Response-Time-Ms"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id and write one access log line.

    An inbound X-Request-Id from a proxy is reused. The log line names the
    authenticated caller when the route verified a token.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()

        response: Response = await call_next(request)

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers[TIMING_HEADER] = str(elapsed_ms)

        claims = getattr(request.state, "claims", None)
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "[%s] %s %s -> %s in %sms (user=%s)",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            claims.id if claims else "-",
        )
        return response


def setup_middleware(app: FastAPI) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER, TIMING_HEADER],
    )
    app.add_middleware(RequestIdMiddleware)
