"""Domain errors raised by the service layer.

Each error is an ``HTTPException`` so FastAPI renders it as ``{"detail": ...}``
with the matching status code; services stay free of status-code plumbing.
"""

from __future__ import annotations

from fastapi import HTTPException, status


class DomainError(HTTPException):
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str) -> None:
        super().__init__(status_code=self.status_code, detail=detail)

    @property
    def message(self) -> str:
        return str(self.detail)


class NotFoundError(DomainError):
    """Entity is missing, archived, outside the organization, or not owned by the caller."""

    status_code = status.HTTP_404_NOT_FOUND


class ValidationError(DomainError):
    """Cross-field input rejected by the core (empty update, inverted window, foreign rate card)."""

    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT


class ConflictError(DomainError):
    """Uniqueness violation translated from the store."""

    status_code = status.HTTP_409_CONFLICT
