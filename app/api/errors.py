"""Exception handlers mapping service errors onto HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse

from app.errors import AdmissionDenied, RestyleError

logger = logging.getLogger(__name__)


async def restyle_error_handler(request: Request, exc: RestyleError) -> PlainTextResponse:
    if exc.status_code >= 500:
        logger.error("Error in %s %s: %s", request.method, request.url.path, exc.message)
        return PlainTextResponse("Internal Server Error", status_code=500)
    return PlainTextResponse(exc.message, status_code=exc.status_code)


async def admission_denied_handler(request: Request, exc: AdmissionDenied) -> PlainTextResponse:
    return PlainTextResponse(
        exc.message,
        status_code=429,
        headers={
            "X-RateLimit-Limit": str(exc.limit),
            "X-RateLimit-Remaining": str(exc.remaining),
        },
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> PlainTextResponse:
    logger.exception("Unhandled error in %s %s", request.method, request.url.path)
    return PlainTextResponse("Internal Server Error", status_code=500)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> PlainTextResponse:
    return PlainTextResponse("Bad Request", status_code=400)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AdmissionDenied, admission_denied_handler)
    app.add_exception_handler(RestyleError, restyle_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)


