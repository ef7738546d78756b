"""
Storage abstraction layer.

All persistence goes through these interfaces. This allows swapping
implementations (in-memory → PostgreSQL) without changing application code.

- PrincipalStore → the users table (id, email unique, federated_id unique)
- MetadataStorage → appointments, documents, reviews, specializations

Each call is expected to be atomic for the single row it touches; nothing
here spans rows in one transaction.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel

from careportal.core.models import Principal, PrincipalCreate


class DuplicatePrincipalError(Exception):
    """A create or link would violate the email or federated-id uniqueness."""

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(f"Principal with {field}={value!r} already exists")


# =============================================================================
# Storage Interfaces
# =============================================================================


class PrincipalStore(ABC):
    """
    Durable identity records.

    Lookups return None on a miss. Email arguments are matched
    case-insensitively.
    """

    @abstractmethod
    async def find_by_id(self, principal_id: int) -> Principal | None:
        """Get a principal by id."""
        pass

    @abstractmethod
    async def find_by_email(self, email: str) -> Principal | None:
        """Get a principal by email."""
        pass

    @abstractmethod
    async def find_by_federated_id(self, federated_id: str) -> Principal | None:
        """Get the principal a federated identity is bound to."""
        pass

    @abstractmethod
    async def create(self, fields: PrincipalCreate) -> Principal:
        """
        Insert a principal and assign its id.

        Raises:
            DuplicatePrincipalError: email or federated_id already taken
        """
        pass

    @abstractmethod
    async def link_federated_identity(
        self,
        email: str,
        federated_id: str,
        avatar_url: str | None = None,
    ) -> Principal | None:
        """
        Attach a federated identity to the principal owning ``email``.

        Sets auth_origin to federated and replaces the avatar when one is
        given. Role and password hash are left alone. Returns None if no
        principal has that email.

        Raises:
            DuplicatePrincipalError: federated_id is bound to someone else
        """
        pass


class MetadataStorage(ABC):
    """
    Storage for structured resource records.

    Production Implementation: PostgreSQL
    Local Implementation: in-memory
    """

    @abstractmethod
    async def save(self, collection: str, id: int, data: dict[str, Any]) -> None:
        """Save a document to a collection."""
        pass

    @abstractmethod
    async def get(self, collection: str, id: int) -> dict[str, Any] | None:
        """Get a document by ID."""
        pass

    @abstractmethod
    async def delete(self, collection: str, id: int) -> bool:
        """Delete a document."""
        pass

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Query documents with optional filters."""
        pass

    @abstractmethod
    async def update(self, collection: str, id: int, updates: dict[str, Any]) -> bool:
        """Partial update of a document."""
        pass

    @abstractmethod
    async def next_id(self, collection: str) -> int:
        """Allocate the next integer id in a collection."""
        pass


# =============================================================================
# Storage Provider (dependency injection container)
# =============================================================================


class StorageProvider(BaseModel):
    """
    Container for all storage backends.

    Initialize once at app startup with appropriate implementations.
    """

    model_config = {"arbitrary_types_allowed": True}

    principals: PrincipalStore
    metadata: MetadataStorage


# =============================================================================
# Collection Names (for MetadataStorage)
# =============================================================================


class Collections:
    """Standard collection/table names."""

    APPOINTMENTS = "appointments"
    DOCUMENTS = "documents"
    REVIEWS = "reviews"
    SPECIALIZATIONS = "specializations"
    DOCTOR_SPECIALIZATIONS = "doctor_specializations"
