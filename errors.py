# errors.py
"""Domain errors raised by the manager modules and mapped to HTTP by web.py."""


class BarttleError(Exception):
    status_code = 500


class ValidationError(BarttleError):
    status_code = 400


class AuthError(BarttleError):
    status_code = 401


class PermissionDenied(BarttleError):
    status_code = 403


class NotFoundError(BarttleError):
    status_code = 404


class InvalidTransition(BarttleError):
    status_code = 409


class GenerationError(BarttleError):
    """A hosted model call failed or returned an unusable answer."""
    status_code = 502
