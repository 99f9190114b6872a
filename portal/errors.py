"""
Error taxonomy for the contest portal

Controllers catch these at their boundary and turn them into a
user-visible message; the HTTP layer maps them to status codes.
"""
from typing import Optional

from fastapi import HTTPException


class PortalError(Exception):
    """Base class for all portal failures"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PortalError):
    """User input failed a precondition (no network call was made)"""

    status_code = 400

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class TransferError(PortalError):
    """Upload transport failed (network, server rejection, abort)"""

    status_code = 502


class StoreError(PortalError):
    """Metadata write or listing read failed"""

    status_code = 500

    def __init__(self, message: str, location: Optional[str] = None):
        super().__init__(message)
        # Object uploaded before the failure, if any
        self.location = location


class NotFoundError(PortalError):
    """Submission id does not exist"""

    status_code = 404


class DeliveryError(PortalError):
    """Webhook relay failed"""

    status_code = 500

    def __init__(self, message: str, status: Optional[int] = None, details: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.details = details


def error_detail(error: PortalError) -> dict:
    """JSON-friendly description used in HTTP error responses"""
    detail = {"error": type(error).__name__, "message": error.message}
    if isinstance(error, ValidationError):
        detail["field"] = error.field
    return detail


def to_http_exception(error: PortalError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error_detail(error))
