"""
Domain errors raised by the service layer.

Endpoints let these propagate; the handlers registered in simplr.main turn
them into JSON responses with the matching status code.
"""

from typing import Optional


class SimplrError(Exception):
    """Base class for all domain errors"""
    status_code = 400

    def __init__(self, message: str, detail: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class ValidationError(SimplrError):
    """Input rejected before any remote call (names, bounds, invariants)"""
    status_code = 422


class PermissionDeniedError(SimplrError):
    """Actor attempted an action the permission engine denies"""
    status_code = 403


class NotFoundError(SimplrError):
    status_code = 404


class ConflictError(SimplrError):
    """Duplicate membership, full team, used invite"""
    status_code = 409


class RemoteStoreError(SimplrError):
    """Database or network failure while talking to the store"""
    status_code = 502
