# =============================================================================
# Auth API Routes
# =============================================================================
#
# Endpoints:
#   POST /api/auth/register       - Create account, get token
#   POST /api/auth/login          - Get token
#   POST /api/auth/logout         - Stateless; client discards token
#   GET  /api/auth/profile        - Current principal
#   POST /api/auth/refresh-token  - Re-issue from current store data
#   GET  /api/auth/check          - Is the presented token good?
#
# Federated:
#   GET  /api/auth/providers        - Configured providers
#   GET  /api/auth/google           - Redirect to Google sign-in
#   GET  /api/auth/google/callback  - Complete flow, redirect to client with token
#   GET  /api/auth/google/failure   - Redirect to client error page
#
# =============================================================================

import json
import logging
from typing import Literal
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, EmailStr, Field

from careportal.auth.context import AuthContext
from careportal.auth.credentials import hash_password, verify_credentials
from careportal.auth.errors import ConflictError, IdentityLinkError, NotFoundError
from careportal.auth.federation import link_or_create_federated_principal
from careportal.auth.gate import authenticate, get_principal_store, get_tokens
from careportal.auth.jwt import TokenResponse, TokenService
from careportal.config import get_settings
from careportal.core.models import AuthOrigin, PrincipalCreate, PrincipalResponse, Role
from careportal.integrations.oauth import OAuthError, OAuthManager, get_oauth_manager
from careportal.storage.base import DuplicatePrincipalError, PrincipalStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


# =============================================================================
# Request/Response Models
# =============================================================================

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    first_name: str = Field(min_length=2, max_length=50)
    last_name: str = Field(min_length=2, max_length=50)
    phone: str | None = None
    role: Literal["patient", "doctor"] = "patient"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


def get_oauth(request: Request) -> OAuthManager:
    return getattr(request.app.state, "oauth", None) or get_oauth_manager()


# =============================================================================
# Public Endpoints
# =============================================================================

@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    data: RegisterRequest,
    store: PrincipalStore = Depends(get_principal_store),
    tokens: TokenService = Depends(get_tokens),
):
    """
    Create a new local account.

    Returns a session token on success.
    """
    try:
        principal = await store.create(PrincipalCreate(
            email=data.email,
            password_hash=hash_password(data.password),
            first_name=data.first_name.strip(),
            last_name=data.last_name.strip(),
            phone=data.phone,
            role=Role(data.role),
            auth_origin=AuthOrigin.LOCAL,
        ))
    except DuplicatePrincipalError:
        raise ConflictError("User already exists with this email")

    logger.info(f"Registered principal {principal.id} as {principal.role.value}")
    return tokens.token_response(principal)


@router.post("/login", response_model=TokenResponse)
async def login(
    data: LoginRequest,
    store: PrincipalStore = Depends(get_principal_store),
    tokens: TokenService = Depends(get_tokens),
):
    """Authenticate with email and password."""
    principal = await verify_credentials(store, data.email, data.password)
    return tokens.token_response(principal)


@router.post("/logout")
async def logout():
    """
    Logout (client should discard the token).

    Tokens are stateless, so there is nothing to revoke server-side.
    """
    return {"message": "Logged out successfully"}


# =============================================================================
# Protected Endpoints
# =============================================================================

@router.get("/profile", response_model=PrincipalResponse)
async def get_profile(
    ctx: AuthContext = Depends(authenticate),
    store: PrincipalStore = Depends(get_principal_store),
):
    """Get the current authenticated principal."""
    principal = await store.find_by_id(ctx.id)
    if principal is None:
        raise NotFoundError("User not found")
    return PrincipalResponse.from_principal(principal)


@router.post("/refresh-token", response_model=TokenResponse)
async def refresh_token(
    ctx: AuthContext = Depends(authenticate),
    store: PrincipalStore = Depends(get_principal_store),
    tokens: TokenService = Depends(get_tokens),
):
    """Re-issue a token so role or email corrections reach the claims."""
    token, principal = await tokens.refresh(store, ctx.id)
    return tokens.token_response(principal, token)


@router.get("/check")
async def check(ctx: AuthContext = Depends(authenticate)):
    """Report whether the presented token is currently good."""
    return {"authenticated": True, "user": ctx.to_dict()}


# =============================================================================
# Federated Endpoints
# =============================================================================

def _client_redirect(path: str, **params: str) -> RedirectResponse:
    base = get_settings().client_url.rstrip("/")
    return RedirectResponse(f"{base}{path}?{urlencode(params)}", status_code=302)


@router.get("/providers")
async def list_oauth_providers(oauth: OAuthManager = Depends(get_oauth)):
    """List available OAuth providers (only those properly configured)."""
    return {"providers": oauth.get_available_providers()}


@router.get("/google")
async def google_authorize(oauth: OAuthManager = Depends(get_oauth)):
    """Start the Google sign-in flow."""
    try:
        return RedirectResponse(oauth.get_authorize_url("google"), status_code=302)
    except OAuthError as e:
        logger.warning(f"Google authorize unavailable: {e}")
        return _client_redirect("/auth/error", message="Google login is not available")


@router.get("/google/callback")
async def google_callback(
    code: str | None = None,
    state: str | None = None,
    oauth: OAuthManager = Depends(get_oauth),
    store: PrincipalStore = Depends(get_principal_store),
    tokens: TokenService = Depends(get_tokens),
):
    """
    Complete the Google flow.

    Exchanges the code for a profile, links or creates the principal, and
    hands the token to the client app via redirect.
    """
    if not code or not state or oauth.validate_state(state) != "google":
        return _client_redirect("/auth/error", message="Google authentication failed")

    try:
        profile = await oauth.authenticate("google", code)
        principal = await link_or_create_federated_principal(store, profile)
    except OAuthError as e:
        logger.warning(f"Google login failed: {e}")
        return _client_redirect("/auth/error", message="Google authentication failed")
    except IdentityLinkError as e:
        logger.warning(f"Google login could not be linked: {e.message}")
        return _client_redirect("/auth/error", message=e.message)

    user = PrincipalResponse.from_principal(principal).model_dump(mode="json")
    return _client_redirect(
        "/auth/google/callback",
        token=tokens.issue(principal),
        user=json.dumps(user),
    )


@router.get("/google/failure")
async def google_failure():
    return _client_redirect("/auth/error", message="Google authentication failed")
