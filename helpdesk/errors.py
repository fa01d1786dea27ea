"""Domain errors. The API maps each class to an HTTP status."""


class HelpdeskError(Exception):
    """Base class for errors surfaced to API clients with their message."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(HelpdeskError):
    status_code = 400


class InvalidStatusError(ValidationError):
    def __init__(self, status: object):
        super().__init__(
            f"Invalid status '{status}'. Use open, in-progress, resolved, or closed."
        )
        self.status = status


class AuthError(HelpdeskError):
    status_code = 401


class UnexpectedError(HelpdeskError):
    """Storage or other failure the client cannot fix."""

    status_code = 500
