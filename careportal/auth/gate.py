"""
Authentication gate - turns a bearer token into a trusted principal.

Usage:
    @router.get("/appointments")
    async def list_mine(ctx: AuthContext = Depends(authenticate)):
        ...

    @router.get("/doctors/{doctor_id}/documents")
    async def public_docs(ctx: AuthContext | None = Depends(authenticate_optional)):
        ...

The token only proves who the caller was at issuance. The gate reloads the
principal from the store on every request so role or account changes take
effect immediately.
"""

from __future__ import annotations

import logging

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from careportal.auth.context import AuthContext
from careportal.auth.errors import TokenError
from careportal.auth.jwt import TokenService, get_token_service
from careportal.storage.base import PrincipalStore

logger = logging.getLogger(__name__)


# Doesn't fail if no token; the gate decides what a missing token means
bearer = HTTPBearer(auto_error=False)


# =============================================================================
# Core
# =============================================================================


async def resolve_principal(
    token: str | None,
    store: PrincipalStore,
    tokens: TokenService,
) -> AuthContext:
    """
    Verify a bearer token and load the principal it names.

    Raises:
        TokenError: reason "missing", "malformed", "bad_signature",
            "expired" or "subject_not_found"
    """
    if not token:
        raise TokenError("missing")

    claims = tokens.verify(token)

    principal = await store.find_by_id(claims.sub)
    if principal is None:
        logger.warning(f"Token for principal {claims.sub} names no existing account")
        raise TokenError("subject_not_found")

    return AuthContext.from_principal(principal)


# =============================================================================
# FastAPI Dependencies
# =============================================================================


def get_principal_store(request: Request) -> PrincipalStore:
    return request.app.state.storage.principals


def get_tokens(request: Request) -> TokenService:
    return getattr(request.app.state, "tokens", None) or get_token_service()


async def authenticate(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    store: PrincipalStore = Depends(get_principal_store),
    tokens: TokenService = Depends(get_tokens),
) -> AuthContext:
    """Require a valid bearer token; attach the principal to the request."""
    token = credentials.credentials if credentials else None
    try:
        ctx = await resolve_principal(token, store, tokens)
    except TokenError as e:
        logger.info(f"Authentication failed on {request.url.path}: {e.reason}")
        raise

    request.state.principal = ctx
    return ctx


async def authenticate_optional(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    store: PrincipalStore = Depends(get_principal_store),
    tokens: TokenService = Depends(get_tokens),
) -> AuthContext | None:
    """Same checks as ``authenticate`` but any failure means anonymous."""
    token = credentials.credentials if credentials else None
    try:
        ctx = await resolve_principal(token, store, tokens)
    except TokenError:
        request.state.principal = None
        return None

    request.state.principal = ctx
    return ctx
