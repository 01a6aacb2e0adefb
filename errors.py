from fastapi import HTTPException


class ApiError(HTTPException):
    """Base class for errors rendered into the response envelope.

    The class name doubles as the ``error`` field of the envelope, the
    ``detail`` becomes its ``message``.
    """

    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None, headers: dict | None = None):
        super().__init__(status_code=self.status_code, detail=message or self.default_message, headers=headers)

    @property
    def name(self) -> str:
        return type(self).__name__


class ValidationFailed(ApiError):
    status_code = 400
    default_message = "Invalid input data"


class Unauthorized(ApiError):
    status_code = 401
    default_message = "Authentication required"

    def __init__(self, message: str | None = None):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(ApiError):
    status_code = 403
    default_message = "Access denied. Insufficient permissions."


class NotFound(ApiError):
    status_code = 404
    default_message = "Resource not found"


class Conflict(ApiError):
    status_code = 409
    default_message = "Resource state conflict"


class InvalidTransition(ApiError):
    status_code = 400
    default_message = "Invalid status transition"


class ServiceUnavailable(ApiError):
    status_code = 503
    default_message = "Service unavailable: cannot connect to database"


class Internal(ApiError):
    status_code = 500


# Status codes HTTPException may carry when raised by the framework itself.
STATUS_NAMES = {
    400: "ValidationFailed",
    401: "Unauthorized",
    403: "Forbidden",
    404: "NotFound",
    405: "MethodNotAllowed",
    409: "Conflict",
    429: "TooManyRequests",
    503: "ServiceUnavailable",
}
