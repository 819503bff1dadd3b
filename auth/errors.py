"""
auth/errors.py -- Exception taxonomy for the authentication core.

Services raise these; api/main.py maps each one to an HTTP status and the
shared ErrorResponse envelope. Nothing in auth/ knows about status codes.

  DuplicateEmailError      -- signup/update conflict (409)
  InvalidCredentialsError  -- signin failure, same for unknown email and
                              wrong password (401)
  InvalidTokenError        -- forged, malformed, or expired JWT (401)
  HashingError             -- bcrypt infrastructure fault (500, logged)

Input validation errors are raised by Pydantic at the HTTP edge
(RequestValidationError) and never reach this package.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every error raised by the auth package."""

    code = "auth_error"
    message = "Authentication error."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message


class DuplicateEmailError(AuthError):
    code = "duplicate_email"
    message = "A user with this email already exists."


class InvalidCredentialsError(AuthError):
    # The message is fixed on purpose: callers must not be able to tell an
    # unknown email from a wrong password.
    code = "invalid_credentials"
    message = "Invalid email or password."


class InvalidTokenError(AuthError):
    code = "invalid_token"
    message = "Invalid or expired token."


class HashingError(AuthError):
    code = "hashing_error"
    message = "Password hashing failed."
