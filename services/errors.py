# services/errors.py
"""Domain errors raised by the services; routers map them onto HTTP codes."""


class DomainError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError, ValueError):
    status_code = 400


class NotFoundError(DomainError, LookupError):
    status_code = 404


class StaleStepError(DomainError):
    """The layer moved (or was edited) after the caller read it."""
    status_code = 409
