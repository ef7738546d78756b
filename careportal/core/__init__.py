"""
Core module - identity data models and shared helpers.

This module contains:
- models: Principal, Role, AuthOrigin, FederatedProfile
- utils: Shared utility functions
"""

from careportal.core.models import (
    AuthOrigin,
    FederatedProfile,
    Principal,
    PrincipalCreate,
    PrincipalResponse,
    Role,
)
from careportal.core.utils import normalize_email, utc_now

__all__ = [
    "AuthOrigin",
    "FederatedProfile",
    "Principal",
    "PrincipalCreate",
    "PrincipalResponse",
    "Role",
    "normalize_email",
    "utc_now",
]
