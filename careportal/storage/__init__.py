"""
Storage abstractions.

Integration Points:
- PrincipalStore → PostgreSQL users table
- MetadataStorage → PostgreSQL resource tables
"""

from careportal.storage.base import (
    Collections,
    DuplicatePrincipalError,
    MetadataStorage,
    PrincipalStore,
    StorageProvider,
)
from careportal.storage.local import (
    InMemoryMetadataStorage,
    InMemoryPrincipalStore,
    create_local_storage,
)

__all__ = [
    "Collections",
    "DuplicatePrincipalError",
    "MetadataStorage",
    "PrincipalStore",
    "StorageProvider",
    "InMemoryMetadataStorage",
    "InMemoryPrincipalStore",
    "create_local_storage",
]
