from typing import Dict, Optional


class ApiError(Exception):
    """Base error carrying the HTTP status it should be rendered with"""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict] = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(ApiError):
    status_code = 400
    default_message = "Invalid request"


class Unauthorized(ApiError):
    status_code = 401
    default_message = "Unauthorized"


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class Conflict(ApiError):
    status_code = 409
    default_message = "Conflict"


class QuotaExceeded(ApiError):
    status_code = 400
    default_message = "Photo limit reached"


class PhotoProcessingError(ApiError):
    status_code = 500
    default_message = "Failed to process photo"


class Unavailable(ApiError):
    status_code = 500
    default_message = "Service unavailable"
