# scrumboard/core/errors.py
"""Exceptions raised by services and mapped to HTTP responses in main.py."""


class ScrumboardError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ScrumboardError):
    """Invalid input or a disallowed state transition. Local state is unchanged."""

    status_code = 400


class NotFoundError(ScrumboardError):
    status_code = 404


class PermissionDeniedError(ScrumboardError):
    status_code = 403
