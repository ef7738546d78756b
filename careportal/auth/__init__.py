"""
Identity, session and access control.

Design principles:
1. Two ways in (password, federated identity), one principal graph
2. Stateless bearer tokens; the principal is reloaded on every request
3. One pure decision function for every resource: admin, role, ownership,
   visibility
4. One error taxonomy, translated to HTTP in exactly one place
"""

from careportal.auth.context import AuthContext
from careportal.auth.credentials import hash_password, verify_credentials, verify_password
from careportal.auth.errors import (
    AuthError,
    AuthErrorKind,
    AuthorizationError,
    ConflictError,
    CredentialError,
    IdentityLinkError,
    NotFoundError,
    TokenError,
)
from careportal.auth.federation import link_or_create_federated_principal
from careportal.auth.gate import authenticate, authenticate_optional, resolve_principal
from careportal.auth.jwt import TokenClaims, TokenResponse, TokenService, get_token_service
from careportal.auth.policies import (
    Action,
    Decision,
    ResourceDescriptor,
    authorize,
    effective_subject,
    require_access,
    require_roles,
)
from careportal.auth.routes import router as auth_router

__all__ = [
    # Gate + decisions
    "authenticate",
    "authenticate_optional",
    "resolve_principal",
    "authorize",
    "require_access",
    "require_roles",
    "effective_subject",
    "AuthContext",
    "Action",
    "Decision",
    "ResourceDescriptor",
    # Credentials + tokens
    "hash_password",
    "verify_password",
    "verify_credentials",
    "TokenClaims",
    "TokenResponse",
    "TokenService",
    "get_token_service",
    # Federation
    "link_or_create_federated_principal",
    # Errors
    "AuthError",
    "AuthErrorKind",
    "AuthorizationError",
    "ConflictError",
    "CredentialError",
    "IdentityLinkError",
    "NotFoundError",
    "TokenError",
    # Router
    "auth_router",
]
