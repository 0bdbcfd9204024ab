"""Domain errors raised below the route layer.

The application exception handlers translate these into HTTP responses.
"""

LOGIN_PATH = '/auth/login'


class MedibookError(Exception):
    """Base class for errors reported back to the user."""

    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationFailed(MedibookError):
    status_code = 400


class AuthenticationFailed(MedibookError):
    status_code = 401


class AuthorizationFailed(MedibookError):
    status_code = 403


class NotFound(MedibookError):
    status_code = 404


class Conflict(MedibookError):
    status_code = 409


class EmailAlreadyRegistered(Conflict):
    def __init__(self, message: str = 'This email is already registered. Please log in instead.'):
        super().__init__(message)


class StoreUnavailable(MedibookError):
    """The document store or identity provider could not complete a call."""

    status_code = 503


class LoginRequired(MedibookError):
    """The action needs a signed-in user; the client is sent to the login page."""

    status_code = 303

    def __init__(self, message: str = 'Please log in to continue.', redirect_to: str = LOGIN_PATH):
        self.redirect_to = redirect_to
        super().__init__(message)
