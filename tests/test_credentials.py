"""
Tests for password hashing and credential verification.
"""

import pytest

from careportal.auth.credentials import hash_password, verify_credentials, verify_password
from careportal.auth.errors import AuthErrorKind, CredentialError
from careportal.core.models import AuthOrigin, PrincipalCreate, Role
from careportal.storage import InMemoryPrincipalStore

from tests.conftest import FAST_ITERATIONS


# =============================================================================
# Hashing
# =============================================================================


class TestPasswordHashing:
    @pytest.mark.parametrize("password", ["s3cret!", "correct horse battery staple", "ümlaut-pässwörd"])
    def test_hash_then_verify(self, password):
        stored = hash_password(password, iterations=FAST_ITERATIONS)

        assert verify_password(password, stored)
        assert not verify_password(password + "x", stored)
        assert not verify_password(password.upper() + "1", stored)

    def test_same_password_hashes_differently(self):
        first = hash_password("repeat-me", iterations=FAST_ITERATIONS)
        second = hash_password("repeat-me", iterations=FAST_ITERATIONS)

        assert first != second
        assert verify_password("repeat-me", first)
        assert verify_password("repeat-me", second)

    def test_plaintext_not_in_hash(self):
        stored = hash_password("visible-password", iterations=FAST_ITERATIONS)
        assert "visible-password" not in stored

    def test_default_cost_from_settings(self):
        stored = hash_password("default-cost")
        assert stored.split("$")[0] == "100000"

    @pytest.mark.parametrize("bad_hash", [None, "", "garbage", "1$2", "abc$salt$hash", "10$salt$"])
    def test_malformed_hash_fails_closed(self, bad_hash):
        assert verify_password("anything", bad_hash) is False

    def test_empty_password_never_verifies(self):
        stored = hash_password("x", iterations=FAST_ITERATIONS)
        assert verify_password("", stored) is False


# =============================================================================
# verify_credentials
# =============================================================================


async def _seed(store: InMemoryPrincipalStore):
    local = await store.create(PrincipalCreate(
        email="Local@Example.com",
        password_hash=hash_password("right-password", iterations=FAST_ITERATIONS),
        role=Role.DOCTOR,
    ))
    federated = await store.create(PrincipalCreate(
        email="fed@example.com",
        federated_id="google:42",
        auth_origin=AuthOrigin.FEDERATED,
    ))
    return local, federated


class TestVerifyCredentials:
    @pytest.mark.asyncio
    async def test_correct_password(self):
        store = InMemoryPrincipalStore()
        local, _ = await _seed(store)

        principal = await verify_credentials(store, "local@example.com", "right-password")
        assert principal.id == local.id
        assert principal.role == Role.DOCTOR

    @pytest.mark.asyncio
    async def test_email_is_case_insensitive(self):
        store = InMemoryPrincipalStore()
        local, _ = await _seed(store)

        principal = await verify_credentials(store, "LOCAL@EXAMPLE.COM", "right-password")
        assert principal.id == local.id

    @pytest.mark.asyncio
    async def test_failures_are_indistinguishable(self):
        store = InMemoryPrincipalStore()
        await _seed(store)

        errors = []
        for email, password in [
            ("local@example.com", "wrong-password"),
            ("nobody@example.com", "right-password"),
            ("fed@example.com", "anything"),
        ]:
            with pytest.raises(CredentialError) as exc_info:
                await verify_credentials(store, email, password)
            errors.append(exc_info.value)

        assert {e.message for e in errors} == {"Invalid email or password"}
        assert {e.kind for e in errors} == {AuthErrorKind.CREDENTIAL_INVALID}
        assert {e.status_code for e in errors} == {401}
