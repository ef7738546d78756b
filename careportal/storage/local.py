"""
Local storage implementations for development and tests.

These are in-memory implementations that work without any external
services. Uniqueness is enforced the same way a database constraint would,
by rejecting the second writer.
"""

from __future__ import annotations

import itertools
from typing import Any

from careportal.core.models import AuthOrigin, Principal, PrincipalCreate
from careportal.core.utils import normalize_email, utc_now
from careportal.storage.base import (
    DuplicatePrincipalError,
    MetadataStorage,
    PrincipalStore,
    StorageProvider,
)


# =============================================================================
# In-Memory Principal Store
# =============================================================================


class InMemoryPrincipalStore(PrincipalStore):
    """In-memory users table with unique email and federated-id indexes."""

    def __init__(self):
        self._principals: dict[int, Principal] = {}
        self._by_email: dict[str, int] = {}
        self._by_federated_id: dict[str, int] = {}
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._principals)

    async def find_by_id(self, principal_id: int) -> Principal | None:
        principal = self._principals.get(principal_id)
        return principal.model_copy() if principal else None

    async def find_by_email(self, email: str) -> Principal | None:
        principal_id = self._by_email.get(normalize_email(email))
        return await self.find_by_id(principal_id) if principal_id else None

    async def find_by_federated_id(self, federated_id: str) -> Principal | None:
        principal_id = self._by_federated_id.get(federated_id)
        return await self.find_by_id(principal_id) if principal_id else None

    async def create(self, fields: PrincipalCreate) -> Principal:
        email = normalize_email(fields.email)
        if email in self._by_email:
            raise DuplicatePrincipalError("email", email)
        if fields.federated_id and fields.federated_id in self._by_federated_id:
            raise DuplicatePrincipalError("federated_id", fields.federated_id)

        now = utc_now()
        principal = Principal(
            id=next(self._ids),
            **{**fields.model_dump(), "email": email},
            created_at=now,
            updated_at=now,
        )

        self._principals[principal.id] = principal
        self._by_email[email] = principal.id
        if principal.federated_id:
            self._by_federated_id[principal.federated_id] = principal.id

        return principal.model_copy()

    async def link_federated_identity(
        self,
        email: str,
        federated_id: str,
        avatar_url: str | None = None,
    ) -> Principal | None:
        principal_id = self._by_email.get(normalize_email(email))
        if not principal_id:
            return None

        owner = self._by_federated_id.get(federated_id)
        if owner is not None and owner != principal_id:
            raise DuplicatePrincipalError("federated_id", federated_id)

        principal = self._principals[principal_id]
        updates: dict[str, Any] = {
            "federated_id": federated_id,
            "auth_origin": AuthOrigin.FEDERATED,
            "updated_at": utc_now(),
        }
        if avatar_url:
            updates["avatar_url"] = avatar_url

        linked = principal.model_copy(update=updates)
        self._principals[principal_id] = linked
        self._by_federated_id[federated_id] = principal_id
        return linked.model_copy()


# =============================================================================
# In-Memory Metadata Storage
# =============================================================================


class InMemoryMetadataStorage(MetadataStorage):
    """In-memory document storage for development."""

    def __init__(self):
        self._data: dict[str, dict[int, dict[str, Any]]] = {}
        self._counters: dict[str, itertools.count] = {}

    async def save(self, collection: str, id: int, data: dict[str, Any]) -> None:
        if collection not in self._data:
            self._data[collection] = {}
        self._data[collection][id] = {
            **data,
            "id": id,
            "updated_at": utc_now().isoformat(),
        }

    async def get(self, collection: str, id: int) -> dict[str, Any] | None:
        doc = self._data.get(collection, {}).get(id)
        return dict(doc) if doc else None

    async def delete(self, collection: str, id: int) -> bool:
        if collection in self._data and id in self._data[collection]:
            del self._data[collection][id]
            return True
        return False

    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        if collection not in self._data:
            return []

        results = list(self._data[collection].values())

        # Apply filters
        if filters:
            results = [
                doc for doc in results
                if all(doc.get(key) == value for key, value in filters.items())
            ]

        # Apply pagination
        return [dict(doc) for doc in results[offset:offset + limit]]

    async def update(self, collection: str, id: int, updates: dict[str, Any]) -> bool:
        if collection in self._data and id in self._data[collection]:
            self._data[collection][id].update(updates)
            self._data[collection][id]["updated_at"] = utc_now().isoformat()
            return True
        return False

    async def next_id(self, collection: str) -> int:
        if collection not in self._counters:
            self._counters[collection] = itertools.count(1)
        return next(self._counters[collection])


# =============================================================================
# Factory
# =============================================================================


def create_local_storage() -> StorageProvider:
    """Create a StorageProvider with in-memory implementations."""
    return StorageProvider(
        principals=InMemoryPrincipalStore(),
        metadata=InMemoryMetadataStorage(),
    )
