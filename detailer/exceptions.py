"""
Exception hierarchy for the detailer service.

Everything raised by the repository, the storage backends and the session
recorder derives from DetailerError so the HTTP layer can turn it into a
``{"success": false, "message": ...}`` body with one handler.
"""

from typing import Optional


class DetailerError(Exception):
    """Base exception for all detailer errors."""

    status_code = 500

    def __init__(
        self,
        message: str,
        error_code: str = "DETAILER_ERROR",
        details: Optional[dict] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(DetailerError):
    """A doctor, presentation, slide or session id is unknown."""

    status_code = 404

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(
            message=f"{kind.capitalize()} not found with ID: {record_id}",
            error_code=f"{kind.upper().replace(' ', '_')}_NOT_FOUND",
            details={"id": record_id},
        )


class SessionAlreadyEndedError(DetailerError):
    """The session already has an end time."""

    status_code = 409

    def __init__(self, session_id: str, end_time: str):
        super().__init__(
            message=f"Session {session_id} already ended at {end_time}",
            error_code="SESSION_ALREADY_ENDED",
            details={"id": session_id, "endTime": end_time},
        )


class InvalidInputError(DetailerError):
    """A required field is missing or blank."""

    status_code = 400

    def __init__(self, message: str, field: str):
        super().__init__(message, error_code="INVALID_INPUT", details={"field": field})


class InvalidNavigationError(DetailerError):
    """Slide index outside the deck, or the recorder is not in a navigable state."""

    status_code = 400

    def __init__(self, message: str, **details):
        super().__init__(message, error_code="INVALID_NAVIGATION", details=details)


class StorageError(DetailerError):
    """Loading or saving the document store failed."""

    status_code = 500

    def __init__(self, message: str, backend: str):
        super().__init__(
            message, error_code="STORAGE_ERROR", details={"backend": backend}
        )
