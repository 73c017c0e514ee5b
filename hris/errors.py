from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message


class ValidationFailed(ApiError):
    """Malformed input rejected before any data access."""

    def __init__(self, message: str, code: str = "VALIDATION_ERROR"):
        super().__init__(status_code=422, code=code, message=message)


class NotAuthenticated(ApiError):
    def __init__(self, message: str = "Missing bearer token.", code: str = "INVALID_TOKEN"):
        super().__init__(status_code=401, code=code, message=message)


class AuthorizationDenied(ApiError):
    """No policy predicate matched the requested operation."""

    def __init__(self, message: str = "Insufficient permissions."):
        super().__init__(status_code=403, code="FORBIDDEN", message=message)


class NotFound(ApiError):
    def __init__(self, message: str):
        super().__init__(status_code=404, code="NOT_FOUND", message=message)


class UniquenessConflict(ApiError):
    def __init__(self, message: str, code: str = "CONFLICT"):
        super().__init__(status_code=409, code=code, message=message)


class InvalidTransition(ApiError):
    def __init__(self, message: str):
        super().__init__(status_code=409, code="INVALID_TRANSITION", message=message)


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_response(request: Request, *, status_code: int, code: str, message: str) -> JSONResponse:
    payload = {
        "error": {
            "code": code,
            "message": message,
            "request_id": get_request_id(request),
        }
    }
    return JSONResponse(status_code=status_code, content=payload)
