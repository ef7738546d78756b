"""
Federated identity linking.

Turns a profile asserted by an external provider into exactly one local
principal:

1. Known federated id → that principal, unchanged.
2. Known email → link the federated id onto the existing account.
3. Otherwise → create a new patient account with no local password.

Step 3 races with concurrent logins for the same new email. The store's
uniqueness constraint picks the winner; losers fall back to steps 1-2 once
instead of surfacing the conflict.
"""

from __future__ import annotations

import logging

from careportal.auth.errors import IdentityLinkError
from careportal.core.models import (
    AuthOrigin,
    FederatedProfile,
    Principal,
    PrincipalCreate,
    Role,
)
from careportal.storage.base import DuplicatePrincipalError, PrincipalStore

logger = logging.getLogger(__name__)


async def _find_existing(store: PrincipalStore, profile: FederatedProfile) -> Principal | None:
    federated_id = profile.federated_id

    principal = await store.find_by_federated_id(federated_id)
    if principal:
        return principal

    existing = await store.find_by_email(profile.email)
    if existing is None:
        return None

    if existing.federated_id and existing.federated_id != federated_id:
        # Federated ids are never replaced once attached
        raise IdentityLinkError(
            "This email is already linked to a different external account"
        )

    try:
        linked = await store.link_federated_identity(
            profile.email,
            federated_id,
            profile.avatar_url,
        )
    except DuplicatePrincipalError:
        # Bound to another principal between our lookup and the link
        return await store.find_by_federated_id(federated_id)

    if linked:
        logger.info(f"Linked {profile.provider} identity to principal {linked.id}")
    return linked


async def link_or_create_federated_principal(
    store: PrincipalStore,
    profile: FederatedProfile,
) -> Principal:
    """
    Resolve a federated profile to a principal, linking or creating as needed.

    Raises:
        IdentityLinkError: the profile has no email, or the email belongs to
            an account already bound to a different federated identity
    """
    if not profile.email:
        raise IdentityLinkError("Federated profile did not provide an email address")

    principal = await _find_existing(store, profile)
    if principal:
        return principal

    try:
        principal = await store.create(PrincipalCreate(
            email=profile.email,
            first_name=profile.given_name or "",
            last_name=profile.family_name or "",
            role=Role.PATIENT,  # Federated signup never grants more
            federated_id=profile.federated_id,
            auth_origin=AuthOrigin.FEDERATED,
            avatar_url=profile.avatar_url,
        ))
    except DuplicatePrincipalError as e:
        logger.info(f"Federated create lost a race on {e.field}; retrying as lookup")
        principal = await _find_existing(store, profile)
        if principal is None:
            raise
        return principal

    logger.info(f"Created principal {principal.id} from {profile.provider} login")
    return principal
