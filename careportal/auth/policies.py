"""
Policies - the authorization decision for every protected resource.

Design:
- `authorize()` is a pure function of (principal, resource, roles, action)
- Gates are evaluated in order; the first one that admits wins
- Denials are uniform: "access denied" or "role not permitted"
- Existence is checked by the caller's lookup before this runs

Gates:
    admin override   role == admin                       → allow
    role gate        role not in required set            → deny (role not permitted)
    ownership        subject id is one of the owner ids  → allow
    visibility       resource is public and action read  → allow

Usage in routes:
    appointment = await load_appointment(appointment_id)   # 404 first
    require_access(ctx, appointment.descriptor().restricted_to("doctor"),
                   required_roles={Role.DOCTOR}, action=Action.WRITE)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Collection, Mapping

from fastapi import Depends

from careportal.auth.context import AuthContext
from careportal.auth.errors import AuthorizationError
from careportal.auth.gate import authenticate
from careportal.core.models import Role

logger = logging.getLogger(__name__)

ACCESS_DENIED = "access denied"
ROLE_NOT_PERMITTED = "role not permitted"


class Action(str, Enum):
    """What the caller wants to do with the resource."""

    READ = "read"
    WRITE = "write"


# =============================================================================
# Resource Descriptor
# =============================================================================


@dataclass(frozen=True)
class ResourceDescriptor:
    """
    Abstract view of a resource for authorization.

    Owners are keyed by relation so an endpoint can say which relationship
    counts, e.g. only the assigned doctor may write consultation notes even
    though the patient also owns the appointment.
    """

    resource_type: str
    owners: Mapping[str, int | None] = field(default_factory=dict)
    is_public: bool = False

    @property
    def owner_ids(self) -> set[int]:
        return {owner for owner in self.owners.values() if owner is not None}

    def restricted_to(self, *relations: str) -> ResourceDescriptor:
        """Copy keeping only the given owner relations."""
        return ResourceDescriptor(
            resource_type=self.resource_type,
            owners={r: o for r, o in self.owners.items() if r in relations},
            is_public=self.is_public,
        )


@dataclass(frozen=True)
class Decision:
    """Outcome of an authorization check."""

    allowed: bool
    gate: str  # which gate decided: admin, role, ownership, visibility, authenticated, none
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.allowed

    def raise_for_denial(self) -> None:
        if self.allowed:
            return
        if self.reason == ROLE_NOT_PERMITTED:
            raise AuthorizationError("Role not permitted", role_not_permitted=True)
        raise AuthorizationError("Access denied")

    @classmethod
    def allow(cls, gate: str) -> Decision:
        return cls(allowed=True, gate=gate)

    @classmethod
    def deny(cls, gate: str, reason: str = ACCESS_DENIED) -> Decision:
        return cls(allowed=False, gate=gate, reason=reason)


# =============================================================================
# Decision Engine
# =============================================================================


def effective_subject(
    principal: AuthContext,
    target_id: int | None,
    privileged_roles: Collection[Role] = (Role.ADMIN,),
) -> int:
    """
    Id the ownership gate should treat as "the caller".

    A privileged role may name another principal (e.g. an admin managing a
    doctor's specializations); anyone else always acts as themselves.
    """
    if target_id is None or principal.role not in privileged_roles:
        return principal.id
    if target_id != principal.id:
        logger.info(
            f"Principal {principal.id} ({principal.role.value}) acting on behalf of {target_id}"
        )
    return target_id


def authorize(
    principal: AuthContext | None,
    resource: ResourceDescriptor | None = None,
    required_roles: Collection[Role] | None = None,
    action: Action = Action.READ,
    on_behalf_of: int | None = None,
) -> Decision:
    """
    Decide whether ``principal`` may perform ``action`` on ``resource``.

    ``principal`` is None for anonymous callers (optional-auth endpoints);
    only the visibility gate can admit them. ``resource`` is None for
    endpoints guarded by role alone.
    """
    if principal is not None and principal.role == Role.ADMIN:
        return Decision.allow("admin")

    if required_roles is not None:
        if principal is None or principal.role not in required_roles:
            return Decision.deny("role", ROLE_NOT_PERMITTED)

    if resource is None:
        if principal is None:
            return Decision.deny("none")
        return Decision.allow("role" if required_roles is not None else "authenticated")

    if principal is not None:
        subject = effective_subject(principal, on_behalf_of)
        if subject in resource.owner_ids:
            return Decision.allow("ownership")

    if resource.is_public and action == Action.READ:
        return Decision.allow("visibility")

    return Decision.deny("none")


def require_access(
    principal: AuthContext | None,
    resource: ResourceDescriptor | None = None,
    required_roles: Collection[Role] | None = None,
    action: Action = Action.READ,
    on_behalf_of: int | None = None,
) -> Decision:
    """``authorize`` that raises AuthorizationError on denial."""
    decision = authorize(principal, resource, required_roles, action, on_behalf_of)
    if not decision:
        logger.info(
            f"Denied {action.value} on {resource.resource_type if resource else 'endpoint'} "
            f"for principal {principal.id if principal else 'anonymous'}: {decision.reason}"
        )
    decision.raise_for_denial()
    return decision


# =============================================================================
# FastAPI Dependency
# =============================================================================


def require_roles(*roles: Role) -> Callable:
    """
    Require the caller to hold one of ``roles`` (admins always pass).

    Usage:
        @router.get("/appointments/patient/{patient_id}")
        async def for_patient(
            patient_id: int,
            ctx: AuthContext = Depends(require_roles(Role.DOCTOR)),
        ):
            ...
    """
    allowed = frozenset(roles)

    async def dependency(ctx: AuthContext = Depends(authenticate)) -> AuthContext:
        require_access(ctx, required_roles=allowed)
        return ctx

    return dependency
