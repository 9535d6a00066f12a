"""
Error taxonomy for the station.

Every failure an operation can report to a client is one of these classes.
The HTTP layer maps them to responses using ``status_code`` and ``code``;
anything else that escapes a request is rendered as ``Internal``.
"""

from typing import Any, Dict, Optional


class DemoHubError(Exception):
    """Base class for all expected, client-visible failures."""

    status_code = 500
    code = "INTERNAL"
    default_message = "Internal error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code}


class InvalidPath(DemoHubError):
    status_code = 400
    code = "INVALID_PATH"
    default_message = "Invalid path"


class NotFound(DemoHubError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Not found"


class AlreadyExists(DemoHubError):
    status_code = 409
    code = "ALREADY_EXISTS"
    default_message = "Already exists"


class NameRequired(DemoHubError):
    status_code = 400
    code = "NAME_REQUIRED"
    default_message = "Name is required"


class WeakPassword(DemoHubError):
    status_code = 400
    code = "WEAK_PASSWORD"
    default_message = "Password is too short"


class MissingPassword(DemoHubError):
    status_code = 400
    code = "MISSING_PASSWORD"
    default_message = "Password is required"


class UnsupportedType(DemoHubError):
    status_code = 400
    code = "UNSUPPORTED_TYPE"
    default_message = "Only .wav files are supported"


class HasDemos(DemoHubError):
    status_code = 400
    code = "HAS_DEMOS"
    default_message = "Project still contains demos"


class Unauthenticated(DemoHubError):
    status_code = 401
    code = "UNAUTHENTICATED"
    default_message = "Login required"


class SetupRequired(DemoHubError):
    status_code = 401
    code = "SETUP_REQUIRED"
    default_message = "Set a password first"


class InvalidCredentials(DemoHubError):
    status_code = 401
    code = "INVALID_CREDENTIALS"
    default_message = "Invalid password"


class NotConfigured(DemoHubError):
    status_code = 401
    code = "NOT_CONFIGURED"
    default_message = "No password has been set up"


class AlreadyConfigured(DemoHubError):
    status_code = 409
    code = "ALREADY_CONFIGURED"
    default_message = "A password is already set"


class Forbidden(DemoHubError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "Changes are restricted to the local network"


class RangeNotSatisfiable(DemoHubError):
    """Raised for a Range header that cannot be served; carries the file size."""

    status_code = 416
    code = "RANGE_NOT_SATISFIABLE"
    default_message = "Requested range not satisfiable"

    def __init__(self, size: int, message: Optional[str] = None):
        super().__init__(message)
        self.size = size


class TooManyAttempts(DemoHubError):
    status_code = 429
    code = "TOO_MANY_ATTEMPTS"
    default_message = "Too many login attempts, try again later"


class Internal(DemoHubError):
    pass
