# =============================================================================
# Session Tokens
# =============================================================================
#
# Stateless bearer tokens:
#   - issue:   sign {sub, email, role, iat, exp} with the server secret
#   - verify:  signature first, then expiry, then hand back the claims
#   - refresh: re-issue from current store data
#
# Nothing is persisted server-side. A token stops working when it expires or
# the client throws it away.
#
# =============================================================================

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Callable

import jwt
from pydantic import BaseModel

from careportal.auth.errors import TokenError
from careportal.config import get_settings
from careportal.core.models import Principal, PrincipalResponse, Role
from careportal.core.utils import utc_now
from careportal.storage.base import PrincipalStore

logger = logging.getLogger(__name__)


# =============================================================================
# Models
# =============================================================================

class TokenClaims(BaseModel):
    """Identity snapshot embedded in a token at issuance."""
    sub: int
    email: str
    role: Role
    iat: datetime
    exp: datetime


class TokenResponse(BaseModel):
    """Token returned to client."""
    token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    user: PrincipalResponse


# =============================================================================
# Token Service
# =============================================================================

class TokenService:
    """Issues and verifies signed, time-bounded session tokens."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        lifetime: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = utc_now,
    ):
        self._secret_key = secret_key
        self.algorithm = algorithm
        self.lifetime = lifetime
        self._clock = clock

    @property
    def lifetime_seconds(self) -> int:
        return int(self.lifetime.total_seconds())

    def issue(self, principal: Principal) -> str:
        """Create a signed token for the given principal."""
        now = self._clock()
        payload = {
            "sub": str(principal.id),
            "email": principal.email,
            "role": principal.role.value,
            "iat": int(now.timestamp()),
            "exp": int((now + self.lifetime).timestamp()),
        }
        return jwt.encode(payload, self._secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenClaims:
        """
        Decode and validate a token.

        The signature is checked before anything in the payload is trusted;
        expiry is checked against this service's clock afterwards.

        Raises:
            TokenError: reason is "malformed", "bad_signature" or "expired"
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self.algorithm],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "require": ["sub", "exp", "iat"],
                },
            )
        except jwt.InvalidSignatureError:
            raise TokenError("bad_signature")
        except jwt.InvalidTokenError as e:
            logger.debug(f"Rejected token: {e}")
            raise TokenError("malformed")

        try:
            claims = TokenClaims(
                sub=int(payload["sub"]),
                email=payload.get("email", ""),
                role=Role(payload.get("role")),
                iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (ValueError, TypeError):
            raise TokenError("malformed")

        if claims.exp <= self._clock():
            raise TokenError("expired")

        return claims

    async def refresh(self, store: PrincipalStore, principal_id: int) -> tuple[str, Principal]:
        """
        Re-issue a token for a principal from current store data.

        Callers reach this only through the authentication gate, so the
        presented token has already been verified.

        Raises:
            TokenError: the principal no longer exists
        """
        principal = await store.find_by_id(principal_id)
        if principal is None:
            raise TokenError("subject_not_found")
        return self.issue(principal), principal

    def token_response(self, principal: Principal, token: str | None = None) -> TokenResponse:
        return TokenResponse(
            token=token or self.issue(principal),
            expires_in=self.lifetime_seconds,
            user=PrincipalResponse.from_principal(principal),
        )


@lru_cache
def get_token_service() -> TokenService:
    """Get the process-wide token service, built once from settings."""
    settings = get_settings()
    settings.check_secrets()
    return TokenService(
        secret_key=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        lifetime=timedelta(hours=settings.jwt_token_lifetime_hours),
    )
