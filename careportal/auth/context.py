"""
Auth context - the "who is calling" for each request.

This is the lightweight object the authentication gate attaches to a
request. It is always built from a fresh principal store read, never from
the claims cached in the token.
"""

from __future__ import annotations

from dataclasses import dataclass

from careportal.core.models import AuthOrigin, Principal, Role


@dataclass(frozen=True)
class AuthContext:
    """
    The authenticated principal for a request.

    Usage in routes:
        async def my_route(ctx: AuthContext = Depends(authenticate)):
            print(f"User {ctx.id} ({ctx.role.value})")
    """

    id: int
    email: str
    role: Role
    first_name: str = ""
    last_name: str = ""
    avatar_url: str | None = None
    auth_origin: AuthOrigin = AuthOrigin.LOCAL

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_patient(self) -> bool:
        return self.role == Role.PATIENT

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role.value,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "avatar_url": self.avatar_url,
            "auth_origin": self.auth_origin.value,
        }

    @classmethod
    def from_principal(cls, principal: Principal) -> AuthContext:
        return cls(
            id=principal.id,
            email=principal.email,
            role=principal.role,
            first_name=principal.first_name,
            last_name=principal.last_name,
            avatar_url=principal.avatar_url,
            auth_origin=principal.auth_origin,
        )
