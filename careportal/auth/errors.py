"""
Auth error taxonomy.

Every failure the auth core can report belongs to one AuthErrorKind. The
kind alone decides the HTTP status; the translation happens once, in the
exception handler registered by the API app.
"""

from __future__ import annotations

from enum import Enum


class AuthErrorKind(str, Enum):
    """Closed set of auth failure kinds."""

    CREDENTIAL_INVALID = "credential_invalid"
    AUTHENTICATION_REQUIRED = "authentication_required"
    TOKEN_INVALID = "token_invalid"
    TOKEN_EXPIRED = "token_expired"
    SUBJECT_NOT_FOUND = "subject_not_found"
    FORBIDDEN = "forbidden"
    ROLE_NOT_PERMITTED = "role_not_permitted"
    IDENTITY_LINK = "identity_link"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"


STATUS_CODES: dict[AuthErrorKind, int] = {
    AuthErrorKind.CREDENTIAL_INVALID: 401,
    AuthErrorKind.AUTHENTICATION_REQUIRED: 401,
    AuthErrorKind.TOKEN_INVALID: 401,
    AuthErrorKind.TOKEN_EXPIRED: 401,
    AuthErrorKind.SUBJECT_NOT_FOUND: 401,
    AuthErrorKind.FORBIDDEN: 403,
    AuthErrorKind.ROLE_NOT_PERMITTED: 403,
    AuthErrorKind.IDENTITY_LINK: 400,
    AuthErrorKind.NOT_FOUND: 404,
    AuthErrorKind.CONFLICT: 409,
}


class AuthError(Exception):
    """Base exception for everything the auth core reports to a caller."""

    def __init__(self, kind: AuthErrorKind, message: str):
        self.kind = kind
        self.message = message
        super().__init__(message)

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]


class CredentialError(AuthError):
    """
    Wrong email or password.

    Same message whichever half was wrong, so callers can't tell which
    emails are registered.
    """

    def __init__(self):
        super().__init__(AuthErrorKind.CREDENTIAL_INVALID, "Invalid email or password")


class TokenError(AuthError):
    """Bearer token missing, malformed, forged, expired, or orphaned."""

    REASONS: dict[str, tuple[AuthErrorKind, str]] = {
        "missing": (AuthErrorKind.AUTHENTICATION_REQUIRED, "Authentication required"),
        "malformed": (AuthErrorKind.TOKEN_INVALID, "Invalid token"),
        "bad_signature": (AuthErrorKind.TOKEN_INVALID, "Invalid token"),
        "expired": (AuthErrorKind.TOKEN_EXPIRED, "Token expired"),
        "subject_not_found": (
            AuthErrorKind.SUBJECT_NOT_FOUND,
            "Invalid token: subject not found",
        ),
    }

    def __init__(self, reason: str):
        kind, message = self.REASONS[reason]
        self.reason = reason
        super().__init__(kind, message)


class AuthorizationError(AuthError):
    """Authenticated, but no gate admitted the request."""

    def __init__(self, message: str = "Access denied", role_not_permitted: bool = False):
        kind = AuthErrorKind.ROLE_NOT_PERMITTED if role_not_permitted else AuthErrorKind.FORBIDDEN
        super().__init__(kind, message)


class IdentityLinkError(AuthError):
    """A federated profile can't be reconciled with a local principal."""

    def __init__(self, message: str):
        super().__init__(AuthErrorKind.IDENTITY_LINK, message)


class NotFoundError(AuthError):
    """Resource lookup missed; raised before authorization is evaluated."""

    def __init__(self, message: str = "Not found"):
        super().__init__(AuthErrorKind.NOT_FOUND, message)


class ConflictError(AuthError):
    """Write rejected because the record already exists."""

    def __init__(self, message: str):
        super().__init__(AuthErrorKind.CONFLICT, message)
