"""
Request logging and error responses

Validation failures become 400 with a readable message. Anything
unhandled becomes an opaque 500 carrying a correlation id that also
appears in the server log next to the traceback.
"""

import logging
import uuid
from time import perf_counter

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger("app.requests")

CORRELATION_HEADER = "X-Correlation-ID"


def _correlation_id(request: Request) -> str:
    correlation_id = getattr(request.state, "correlation_id", None)
    if not correlation_id:
        correlation_id = uuid.uuid4().hex
        request.state.correlation_id = correlation_id
    return correlation_id


def _clean_message(msg: str) -> str:
    # pydantic prefixes messages raised from validators
    for prefix in ("Value error, ", "Assertion failed, "):
        if msg.startswith(prefix):
            return msg[len(prefix):]
    return msg


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "loc": [str(part) for part in err.get("loc", ())],
            "msg": _clean_message(str(err.get("msg", ""))),
            "type": err.get("type"),
        }
        for err in exc.errors()
    ]
    first = errors[0] if errors else None
    if first:
        field = first["loc"][-1] if first["loc"] else "request"
        detail = f"{field}: {first['msg']}"
    else:
        detail = "Invalid request"
    return JSONResponse(status_code=400, content={"detail": detail, "errors": errors})


async def unhandled_exception_handler(request: Request, exc: Exception):
    correlation_id = _correlation_id(request)
    logger.error(
        "Unhandled error on %s %s [%s]",
        request.method, request.url.path, correlation_id,
        exc_info=(type(exc), exc, exc.__traceback__)
    )
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error_code": "SERVER_ERROR",
            "correlation_id": correlation_id,
        },
        headers={CORRELATION_HEADER: correlation_id},
    )


async def request_logging_middleware(request: Request, call_next):
    correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
    request.state.correlation_id = correlation_id

    started_at = perf_counter()
    response = await call_next(request)
    duration_ms = (perf_counter() - started_at) * 1000

    response.headers[CORRELATION_HEADER] = correlation_id
    logger.info(
        "%s %s -> %d (%.1f ms)",
        request.method, request.url.path, response.status_code, duration_ms
    )
    return response


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
    app.middleware("http")(request_logging_middleware)
