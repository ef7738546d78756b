# =============================================================================
# OAuth Integration (Google)
# =============================================================================
#
# Setup:
#   1. Go to https://console.cloud.google.com/apis/credentials
#   2. Create OAuth 2.0 Client ID (Web application)
#   3. Add authorized redirect URI: https://yourdomain.com/api/auth/google/callback
#   4. Set env vars:
#      - GOOGLE_OAUTH_CLIENT_ID=...
#      - GOOGLE_OAUTH_CLIENT_SECRET=...
#      - GOOGLE_OAUTH_REDIRECT_URI=...
#
# The provider only hands back a FederatedProfile. Turning that into a local
# principal is careportal.auth.federation's job.
#
# =============================================================================

import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Callable
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from careportal.config import Settings, get_settings
from careportal.core.models import FederatedProfile
from careportal.core.utils import utc_now

logger = logging.getLogger(__name__)


class OAuthError(Exception):
    """OAuth flow error."""
    pass


# =============================================================================
# Google OAuth
# =============================================================================

class GoogleOAuth:
    """Google OAuth 2.0 implementation."""

    AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

    def __init__(self, settings: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings or get_settings()
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        """Check if Google OAuth is configured."""
        return bool(
            self.settings.google_oauth_client_id
            and self.settings.google_oauth_client_secret
        )

    @property
    def redirect_uri(self) -> str:
        return self.settings.google_oauth_redirect_uri

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=10.0)

    def get_authorize_url(self, state: str | None = None) -> str:
        """
        Get URL to redirect user to for Google sign-in.

        Args:
            state: Optional state parameter for CSRF protection
        """
        if not self.is_configured:
            raise OAuthError("Google OAuth not configured")

        params = {
            "client_id": self.settings.google_oauth_client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
            "prompt": "select_account",
        }
        if state:
            params["state"] = state

        return f"{self.AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> dict[str, Any]:
        """Exchange authorization code for tokens."""
        if not self.is_configured:
            raise OAuthError("Google OAuth not configured")

        async with self._client() as client:
            response = await client.post(
                self.TOKEN_URL,
                data={
                    "client_id": self.settings.google_oauth_client_id,
                    "client_secret": self.settings.google_oauth_client_secret,
                    "code": code,
                    "redirect_uri": self.redirect_uri,
                    "grant_type": "authorization_code",
                },
            )

            if response.status_code != 200:
                logger.error(f"Google token exchange failed: {response.status_code}")
                raise OAuthError(f"Token exchange failed: {response.status_code}")

            return response.json()

    async def get_profile(self, access_token: str) -> FederatedProfile:
        """Fetch the signed-in user's profile from Google."""
        async with self._client() as client:
            response = await client.get(
                self.USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )

            if response.status_code != 200:
                logger.error(f"Google userinfo failed: {response.status_code}")
                raise OAuthError(f"Failed to get user info: {response.status_code}")

            data = response.json()

        if not data.get("id"):
            logger.error("Google userinfo response has no subject id")
            raise OAuthError("Google profile is missing the user id")

        # An unverified address is no basis for joining accounts
        email = data.get("email") if data.get("verified_email", False) else None

        fields = {
            "provider": "google",
            "subject": str(data["id"]),
            "given_name": data.get("given_name"),
            "family_name": data.get("family_name"),
            "avatar_url": data.get("picture"),
        }
        try:
            return FederatedProfile(**fields, email=email or None)
        except ValidationError:
            # Unusable address: the linker rejects a profile without one
            logger.warning("Google returned an invalid email address")
            return FederatedProfile(**fields, email=None)

    async def authenticate(self, code: str) -> FederatedProfile:
        """Complete OAuth flow: exchange code and get the profile."""
        tokens = await self.exchange_code(code)
        if not tokens.get("access_token"):
            raise OAuthError("Token exchange returned no access token")
        return await self.get_profile(tokens["access_token"])


# =============================================================================
# OAuth Manager
# =============================================================================

class OAuthManager:
    """Manage all OAuth providers."""

    def __init__(
        self,
        google: GoogleOAuth | None = None,
        state_ttl: timedelta = timedelta(minutes=10),
        clock: Callable[[], datetime] = utc_now,
    ):
        self.google = google or GoogleOAuth()
        self.state_ttl = state_ttl
        self._clock = clock

        # State tokens for CSRF protection, consumed on callback
        self._pending_states: dict[str, tuple[str, datetime]] = {}  # state -> (provider, issued)

    def get_available_providers(self) -> list[str]:
        """Get list of configured OAuth providers."""
        providers = []
        if self.google.is_configured:
            providers.append("google")
        return providers

    def _prune_states(self) -> None:
        cutoff = self._clock() - self.state_ttl
        stale = [s for s, (_, issued) in self._pending_states.items() if issued <= cutoff]
        for state in stale:
            del self._pending_states[state]
        if stale:
            logger.debug(f"Dropped {len(stale)} abandoned OAuth states")

    def create_state(self, provider: str) -> str:
        """Create a state token for CSRF protection."""
        self._prune_states()
        state = secrets.token_urlsafe(24)
        self._pending_states[state] = (provider, self._clock())
        return state

    def validate_state(self, state: str) -> str | None:
        """Validate and consume a state token. Returns provider if valid and fresh."""
        entry = self._pending_states.pop(state, None)
        if entry is None:
            return None
        provider, issued = entry
        if issued <= self._clock() - self.state_ttl:
            return None
        return provider

    def get_authorize_url(self, provider: str) -> str:
        """Get authorization URL for a provider."""
        if provider != "google":
            raise OAuthError(f"Unknown provider: {provider}")
        return self.google.get_authorize_url(self.create_state(provider))

    async def authenticate(self, provider: str, code: str) -> FederatedProfile:
        """Complete authentication for a provider."""
        if provider != "google":
            raise OAuthError(f"Unknown provider: {provider}")
        return await self.google.authenticate(code)


# Global instance
_oauth_manager: OAuthManager | None = None


def get_oauth_manager() -> OAuthManager:
    """Get the OAuth manager singleton."""
    global _oauth_manager
    if _oauth_manager is None:
        _oauth_manager = OAuthManager()
    return _oauth_manager
