"""
Error taxonomy shared by the services and the HTTP layer.

Every error carries the HTTP status it maps to and a stable ``error_type``
tag that ends up in the ``errors.type`` field of the response envelope.
"""


class AppError(Exception):
    status_code = 500
    error_type = "ServerError"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    status_code = 400
    error_type = "ValidationError"


class AuthError(AppError):
    """401 by default; pass ``status_code=403`` for an insufficient role."""

    status_code = 401
    error_type = "AuthError"


class NotFoundError(AppError):
    status_code = 404
    error_type = "NotFound"


class ConflictError(AppError):
    status_code = 409
    error_type = "Conflict"


class ServiceUnavailableError(AppError):
    status_code = 503
    error_type = "ServiceUnavailable"


class ServerError(AppError):
    status_code = 500
    error_type = "ServerError"
