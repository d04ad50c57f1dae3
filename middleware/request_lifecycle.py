"""
Request lifecycle middleware for CapstoneHub Backend.

Assigns a request id (or keeps the one a proxy sent), fills the logging
context, and logs one line when the request starts and one when it ends.
"""

import time
import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response, JSONResponse
from logging_config import get_logger, request_id_var, user_id_var, project_id_var
from jose import jwt, JWTError
from config import config

logger = get_logger("middleware")

REQUEST_ID_HEADER = "X-Request-ID"


def _token_subject(request: Request) -> str:
    """`sub` of the bearer token for log context only; auth itself happens in routes.deps."""
    scheme, _, token = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        return "-"
    try:
        claims = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except JWTError:
        return "-"
    return claims.get("sub") or "-"


def _request_id(request: Request) -> str:
    incoming = request.headers.get(REQUEST_ID_HEADER, "").strip()
    if incoming and len(incoming) <= 64:
        return incoming
    return uuid.uuid4().hex[:8]


class RequestLifecycleMiddleware(BaseHTTPMiddleware):
    """Request tracing and lifecycle logging."""

    async def dispatch(self, request: Request, call_next) -> Response:
        req_id = _request_id(request)
        request_id_var.set(req_id)
        user_id_var.set(_token_subject(request))
        # The project access guard fills this in once it resolves the project
        project_id_var.set("-")

        started = time.perf_counter()
        label = f"{request.method} {request.url.path}"
        logger.info(
            f"→ {label}",
            extra={"data": {"query": str(request.query_params)} if request.query_params else None}
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            elapsed = round((time.perf_counter() - started) * 1000, 1)
            logger.error(
                f"✖ {label} UNHANDLED ERROR ({elapsed}ms): {exc}",
                exc_info=True,
                extra={"data": {"duration_ms": elapsed}}
            )
            return JSONResponse(
                status_code=500,
                content={"detail": "Internal server error", "request_id": req_id},
                headers={REQUEST_ID_HEADER: req_id}
            )

        elapsed = round((time.perf_counter() - started) * 1000, 1)
        log_fn = logger.info if response.status_code < 400 else logger.warning
        log_fn(
            f"← {label} {response.status_code} ({elapsed}ms)",
            extra={"data": {"status": response.status_code, "duration_ms": elapsed}}
        )
        response.headers[REQUEST_ID_HEADER] = req_id
        return response
