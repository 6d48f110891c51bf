"""Errors raised by accessors and auth, mapped to HTTP responses in main.py.

Every error carries a client-safe message only; internal detail goes to the log.
"""


class ApiError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message=None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class Unauthorized(ApiError):
    status_code = 401
    message = "Unauthorized"


class InvalidCredentials(ApiError):
    status_code = 401
    message = "Invalid credentials"


class NotFound(ApiError):
    status_code = 404
    message = "Not found"


class BadRequest(ApiError):
    status_code = 400
    message = "Bad request"


class Conflict(BadRequest):
    message = "Already exists"


class StoreNotConfigured(ApiError):
    status_code = 500
    message = "Database not configured"


class NotificationFailed(ApiError):
    status_code = 500
    message = "Failed to send notification"
