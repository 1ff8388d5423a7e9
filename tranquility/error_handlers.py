import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .exceptions import AppError

logger = logging.getLogger(__name__)

HTTP_ERROR_TYPES = {
    400: "ValidationError",
    401: "AuthError",
    403: "AuthError",
    404: "NotFound",
    409: "Conflict",
}


def error_response(status_code: int, message: str, errors: dict, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "message": message,
            "data": None,
            "errors": errors,
        },
        headers=headers,
    )


def format_validation_errors(exc: RequestValidationError) -> dict:
    """Map each failing field's dotted location to its first message."""
    formatted = {}
    for error in exc.errors():
        path = ".".join(str(part) for part in error.get("loc", ()))
        formatted.setdefault(path, error.get("msg", "Invalid value"))
    return formatted


def register_exception_handlers(app):
    """
    Register global exception handlers so every failure is answered with
    the standard envelope: ``{success, message, data, errors}``.
    """

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s on %s: %s", exc.error_type, request.url.path, exc.message)
        return error_response(exc.status_code, exc.message, {"type": exc.error_type})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return error_response(400, "Invalid input data", format_validation_errors(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_response(
            exc.status_code,
            str(exc.detail),
            {"type": HTTP_ERROR_TYPES.get(exc.status_code, "HTTPError")},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        # Internals stay in the log, never in the response
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(500, "An unexpected error occurred", {"type": "ServerError"})
