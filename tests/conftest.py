"""
Shared fixtures.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from careportal.api.app import create_app
from careportal.auth.credentials import hash_password
from careportal.auth.jwt import TokenService
from careportal.core.models import AuthOrigin, PrincipalCreate, Role
from careportal.integrations.oauth import OAuthManager
from careportal.storage import InMemoryPrincipalStore, StorageProvider, create_local_storage

TEST_SECRET = "test-signing-secret-0123456789abcdef"

# Cheap hashes keep the suite fast; the format is identical
FAST_ITERATIONS = 1_000


def make_principal(
    store: InMemoryPrincipalStore,
    email: str,
    role: Role = Role.PATIENT,
    password: str | None = "correct-horse",
    **fields,
):
    """Create a principal synchronously (for non-async tests)."""
    return asyncio.run(store.create(PrincipalCreate(
        email=email,
        password_hash=hash_password(password, iterations=FAST_ITERATIONS) if password else None,
        role=role,
        auth_origin=AuthOrigin.LOCAL if password else AuthOrigin.FEDERATED,
        **fields,
    )))


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def tokens():
    """Token service with a fixed test secret."""
    return TokenService(secret_key=TEST_SECRET)


@pytest.fixture
def store():
    """Fresh empty principal store."""
    return InMemoryPrincipalStore()


@pytest.fixture
def storage(store) -> StorageProvider:
    local = create_local_storage()
    return StorageProvider(principals=store, metadata=local.metadata)


@pytest.fixture
def oauth():
    return OAuthManager()


@pytest.fixture
def app(storage, tokens, oauth):
    return create_app(storage=storage, tokens=tokens, oauth=oauth)


@pytest.fixture
def client(app):
    return TestClient(app)
