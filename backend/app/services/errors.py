"""Domain errors shared by the HTTP routers and the realtime namespaces."""

from __future__ import annotations

from fastapi import HTTPException, status


class ServiceError(Exception):
    """Base class for failures that are reported back to the acting user."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    category: str = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_http(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.message)


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    category = "not_found"


class AccessDeniedError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    category = "access_denied"


class ConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    category = "conflict"


class ValidationError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    category = "invalid"


class PersistenceError(ServiceError):
    """A critical write failed; nothing has been broadcast."""

    category = "persistence"
