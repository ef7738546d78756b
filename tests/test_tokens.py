"""
Tests for the token service.
"""

from datetime import timedelta

import jwt
import pytest

from careportal.auth.errors import AuthErrorKind, TokenError
from careportal.auth.jwt import TokenService
from careportal.core.models import Principal, Role
from careportal.core.utils import utc_now

from tests.conftest import TEST_SECRET


@pytest.fixture
def principal():
    return Principal(
        id=7,
        email="pat@example.com",
        password_hash="1$ab$cd",
        role=Role.PATIENT,
    )


def _tamper_signature(token: str) -> str:
    header, payload, signature = token.split(".")
    first = "B" if signature[0] == "A" else "A"
    return ".".join([header, payload, first + signature[1:]])


# =============================================================================
# Issue / verify
# =============================================================================


class TestIssueAndVerify:
    def test_round_trip_claims(self, tokens, principal):
        claims = tokens.verify(tokens.issue(principal))

        assert claims.sub == 7
        assert claims.email == "pat@example.com"
        assert claims.role == Role.PATIENT

    def test_lifetime_is_24_hours(self, tokens, principal):
        claims = tokens.verify(tokens.issue(principal))
        assert claims.exp - claims.iat == timedelta(hours=24)
        assert tokens.lifetime_seconds == 86400

    def test_is_a_standard_hs256_jwt(self, tokens, principal):
        token = tokens.issue(principal)
        assert jwt.get_unverified_header(token)["alg"] == "HS256"
        payload = jwt.decode(token, TEST_SECRET, algorithms=["HS256"])
        assert payload["sub"] == "7"

    def test_expired_token(self, principal):
        issued_yesterday = TokenService(
            secret_key=TEST_SECRET,
            clock=lambda: utc_now() - timedelta(hours=25),
        )
        token = issued_yesterday.issue(principal)

        with pytest.raises(TokenError) as exc_info:
            TokenService(secret_key=TEST_SECRET).verify(token)

        assert exc_info.value.reason == "expired"
        assert exc_info.value.kind == AuthErrorKind.TOKEN_EXPIRED
        assert exc_info.value.message == "Token expired"

    def test_still_valid_just_before_expiry(self, principal):
        issued = TokenService(
            secret_key=TEST_SECRET,
            clock=lambda: utc_now() - timedelta(hours=23, minutes=59),
        )
        claims = TokenService(secret_key=TEST_SECRET).verify(issued.issue(principal))
        assert claims.sub == principal.id


# =============================================================================
# Rejection
# =============================================================================


class TestRejection:
    def test_tampered_signature(self, tokens, principal):
        token = _tamper_signature(tokens.issue(principal))

        with pytest.raises(TokenError) as exc_info:
            tokens.verify(token)

        assert exc_info.value.reason == "bad_signature"
        assert exc_info.value.kind == AuthErrorKind.TOKEN_INVALID

    def test_tampered_payload(self, tokens, principal):
        header, _, signature = tokens.issue(principal).split(".")
        forged_payload = jwt.encode(
            {"sub": "1", "email": "x@example.com", "role": "admin", "iat": 0, "exp": 9999999999},
            "attacker-secret-0123456789abcdef0123",
            algorithm="HS256",
        ).split(".")[1]

        with pytest.raises(TokenError) as exc_info:
            tokens.verify(".".join([header, forged_payload, signature]))
        assert exc_info.value.reason == "bad_signature"

    def test_signature_checked_before_expiry(self, principal):
        expired = TokenService(
            secret_key=TEST_SECRET,
            clock=lambda: utc_now() - timedelta(days=3),
        ).issue(principal)

        with pytest.raises(TokenError) as exc_info:
            TokenService(secret_key=TEST_SECRET).verify(_tamper_signature(expired))
        assert exc_info.value.reason == "bad_signature"

    def test_wrong_secret(self, principal):
        token = TokenService(secret_key="another-secret-0123456789abcdef01").issue(principal)

        with pytest.raises(TokenError) as exc_info:
            TokenService(secret_key=TEST_SECRET).verify(token)
        assert exc_info.value.reason == "bad_signature"

    @pytest.mark.parametrize("garbage", ["", "not-a-jwt", "a.b.c", "Bearer xyz"])
    def test_malformed(self, tokens, garbage):
        with pytest.raises(TokenError) as exc_info:
            tokens.verify(garbage)
        assert exc_info.value.reason == "malformed"

    def test_missing_required_claims(self, tokens):
        token = jwt.encode({"email": "a@example.com"}, TEST_SECRET, algorithm="HS256")

        with pytest.raises(TokenError) as exc_info:
            tokens.verify(token)
        assert exc_info.value.reason == "malformed"

    def test_unknown_role_claim(self, tokens):
        now = int(utc_now().timestamp())
        token = jwt.encode(
            {"sub": "3", "email": "a@example.com", "role": "superuser", "iat": now, "exp": now + 60},
            TEST_SECRET,
            algorithm="HS256",
        )

        with pytest.raises(TokenError) as exc_info:
            tokens.verify(token)
        assert exc_info.value.reason == "malformed"


# =============================================================================
# Refresh
# =============================================================================


class TestRefresh:
    @pytest.mark.asyncio
    async def test_refresh_reads_current_store_data(self, tokens, store):
        from careportal.core.models import PrincipalCreate

        created = await store.create(PrincipalCreate(
            email="doc@example.com",
            password_hash="1$ab$cd",
            role=Role.DOCTOR,
        ))

        token, principal = await tokens.refresh(store, created.id)
        claims = tokens.verify(token)

        assert principal.id == created.id
        assert claims.role == Role.DOCTOR
        assert claims.email == "doc@example.com"

    @pytest.mark.asyncio
    async def test_refresh_for_missing_principal(self, tokens, store):
        with pytest.raises(TokenError) as exc_info:
            await tokens.refresh(store, 999)
        assert exc_info.value.reason == "subject_not_found"
