# =============================================================================
# Credential Verification
# =============================================================================
#
# Password hashing (PBKDF2-SHA256, fresh salt per hash) and the
# email + password check used by login. Plaintext never leaves this module
# and is never logged.
#
# Stored hash format:  <iterations>$<salt hex>$<hash hex>
#
# =============================================================================

from __future__ import annotations

import hashlib
import logging
import secrets
from functools import lru_cache

from careportal.auth.errors import CredentialError
from careportal.config import get_settings
from careportal.core.models import Principal
from careportal.storage.base import PrincipalStore

logger = logging.getLogger(__name__)


# =============================================================================
# Password Hashing
# =============================================================================

def _derive(password: str, salt: str, iterations: int) -> str:
    return hashlib.pbkdf2_hmac(
        'sha256',
        password.encode('utf-8'),
        salt.encode('utf-8'),
        iterations=iterations,
    ).hex()


def hash_password(password: str, iterations: int | None = None) -> str:
    """
    Hash a password using PBKDF2-SHA256.

    Two calls with the same password return different strings; both verify.
    """
    iterations = iterations or get_settings().password_hash_iterations
    salt = secrets.token_hex(16)
    return f"{iterations}${salt}${_derive(password, salt, iterations)}"


def verify_password(password: str, password_hash: str | None) -> bool:
    """
    Verify a password against its hash.

    Fails closed: a missing or malformed hash is simply a mismatch.
    """
    if not password or not password_hash:
        return False
    try:
        iterations, salt, stored_hash = password_hash.split('$')
        computed = _derive(password, salt, int(iterations))
        return secrets.compare_digest(computed, stored_hash)
    except (ValueError, TypeError, AttributeError):
        return False


@lru_cache
def _decoy_hash() -> str:
    # Verified against when the email is unknown so both misses cost the same
    return hash_password(secrets.token_hex(16))


# =============================================================================
# Login
# =============================================================================

async def verify_credentials(
    store: PrincipalStore,
    email: str,
    password: str,
) -> Principal:
    """
    Authenticate a principal by email and password.

    Raises:
        CredentialError: unknown email, wrong password, or an account that
            only has a federated identity. All three look identical.
    """
    principal = await store.find_by_email(email)

    if principal is None:
        verify_password(password, _decoy_hash())
        logger.info("Login failed: unknown email")
        raise CredentialError()

    if not principal.has_local_password:
        verify_password(password, _decoy_hash())
        logger.info(f"Login failed: principal {principal.id} has no local password")
        raise CredentialError()

    if not verify_password(password, principal.password_hash):
        logger.info(f"Login failed: wrong password for principal {principal.id}")
        raise CredentialError()

    return principal
