"""
API error type rendered by the exception handlers in ``welfare.main``.

Every error response has the shape::

    {"error": {"code": "NOT_FOUND", "message": "Grievance not found", "details": [...]}}
"""
from typing import Any, Dict, List, Optional


class ApiError(Exception):
    """An operational error with an HTTP status and a stable error code."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details or []

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }

    @classmethod
    def bad_request(cls, message: str = "Bad Request", details=None) -> "ApiError":
        return cls(400, "BAD_REQUEST", message, details)

    @classmethod
    def unauthorized(cls, message: str = "Unauthorized") -> "ApiError":
        return cls(401, "UNAUTHORIZED", message)

    @classmethod
    def forbidden(cls, message: str = "Forbidden") -> "ApiError":
        return cls(403, "FORBIDDEN", message)

    @classmethod
    def not_found(cls, resource: str = "Resource", id: Optional[str] = None) -> "ApiError":
        details = [{"resource": resource, "id": str(id)}] if id is not None else [{"resource": resource}]
        return cls(404, "NOT_FOUND", f"{resource} not found", details)

    @classmethod
    def conflict(cls, message: str = "Conflict", details=None) -> "ApiError":
        return cls(409, "CONFLICT", message, details)

    @classmethod
    def validation_error(cls, message: str = "Validation Error", errors=None) -> "ApiError":
        return cls(422, "VALIDATION_ERROR", message, errors)

    @classmethod
    def internal(cls, message: str = "Internal Server Error") -> "ApiError":
        return cls(500, "INTERNAL", message)
