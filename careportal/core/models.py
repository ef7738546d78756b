"""
Identity data models.

A Principal is one human account. It may have been created by local
registration or by a first federated login, and either origin can later be
joined to the other through the verified email address.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, EmailStr, Field, model_validator

from careportal.core.utils import normalize_email, utc_now


# =============================================================================
# Enums
# =============================================================================


class Role(str, Enum):
    """Platform-wide role, fixed at account creation."""

    PATIENT = "patient"  # Lowest privilege; default for federated signup
    DOCTOR = "doctor"
    ADMIN = "admin"


class AuthOrigin(str, Enum):
    """How the account was last bound to an identity source."""

    LOCAL = "local"          # Email + password registration
    FEDERATED = "federated"  # Third-party identity provider


# =============================================================================
# Principal
# =============================================================================


class Principal(BaseModel):
    """
    A registered account, as held by the principal store.

    Invariants:
    - email is unique (case-insensitive) across principals
    - federated_id, when present, belongs to exactly one principal
    - a local-origin principal always has a password hash
    """

    id: int
    email: str
    password_hash: str | None = None
    first_name: str = ""
    last_name: str = ""
    phone: str | None = None
    role: Role = Role.PATIENT
    federated_id: str | None = None  # e.g. "google:1098765"
    auth_origin: AuthOrigin = AuthOrigin.LOCAL
    avatar_url: str | None = None

    # Timestamps
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def _check_invariants(self) -> Principal:
        self.email = normalize_email(self.email)
        if self.auth_origin == AuthOrigin.LOCAL and not self.password_hash:
            raise ValueError("local principals require a password hash")
        return self

    @property
    def has_local_password(self) -> bool:
        return bool(self.password_hash)


class PrincipalCreate(BaseModel):
    """Fields accepted by the store when creating a principal."""

    email: str
    password_hash: str | None = None
    first_name: str = ""
    last_name: str = ""
    phone: str | None = None
    role: Role = Role.PATIENT
    federated_id: str | None = None
    auth_origin: AuthOrigin = AuthOrigin.LOCAL
    avatar_url: str | None = None


class PrincipalResponse(BaseModel):
    """Principal data returned to clients (no credential material)."""

    id: int
    email: str
    first_name: str
    last_name: str
    phone: str | None
    role: Role
    auth_origin: AuthOrigin
    avatar_url: str | None

    @classmethod
    def from_principal(cls, principal: Principal) -> PrincipalResponse:
        return cls(
            id=principal.id,
            email=principal.email,
            first_name=principal.first_name,
            last_name=principal.last_name,
            phone=principal.phone,
            role=principal.role,
            auth_origin=principal.auth_origin,
            avatar_url=principal.avatar_url,
        )


# =============================================================================
# Federated profile
# =============================================================================


class FederatedProfile(BaseModel):
    """Identity asserted by an external provider after a completed login."""

    provider: str  # "google"
    subject: str   # provider's stable user id
    email: EmailStr | None = None
    given_name: str | None = None
    family_name: str | None = None
    avatar_url: str | None = None

    @property
    def federated_id(self) -> str:
        return f"{self.provider}:{self.subject}"
