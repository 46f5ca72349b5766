"""Error taxonomy shared by the services and the HTTP layer.

Each error carries a stable ``category`` that clients can branch on, the
HTTP status it maps to and a human-readable message. Infrastructure
errors (``StoreError``, ``BlobError``) never expose the underlying cause
in their public message.
"""
from typing import Dict, List, Optional

from fastapi import status


class LoanTrackerError(Exception):
    category = "error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Unexpected error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"category": self.category, "message": self.message}


class ValidationError(LoanTrackerError):
    """Field-level rejection; lists every invalid field, not just the first."""
    category = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid data"

    def __init__(self, field_errors: Dict[str, List[str]], message: Optional[str] = None):
        self.field_errors = field_errors
        super().__init__(message)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["fields"] = self.field_errors
        return data


class Unauthorized(LoanTrackerError):
    category = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authenticated"


class AuthenticationError(Unauthorized):
    default_message = "Incorrect email or password"


class UserNotFound(LoanTrackerError):
    category = "user_not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "User not found"


class NotFound(LoanTrackerError):
    category = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class ConflictError(LoanTrackerError):
    category = "conflict"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Conflicting state"


class AlreadyReturned(ConflictError):
    default_message = "This loan has already been returned"


class EmailTaken(ConflictError):
    default_message = "Email already registered"


class RateLimited(LoanTrackerError):
    category = "rate_limited"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many attempts, try again later"

    def __init__(self, retry_after: int, message: Optional[str] = None):
        self.retry_after = retry_after
        super().__init__(message)


class StoreError(LoanTrackerError):
    category = "store_error"
    default_message = "Could not complete the request"


class BlobError(LoanTrackerError):
    category = "blob_error"
    default_message = "Could not store the file"
