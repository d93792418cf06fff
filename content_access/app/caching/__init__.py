"""
Content caching package.

One generic entity store engine, parameterized per content kind by an
``EntitySchema``, plus kind-specific extensions, versioned snapshots and the
cross-store orchestrator. Indices are derived data: rebuilt after every
accepted change, never patched.
"""

from .orchestrator import ContentOrchestrator, HealthReport
from .schema import ALL_SCHEMAS, EntitySchema, IndexSpec
from .snapshot import (
    CURRENT_SNAPSHOT_VERSION,
    JsonFileSnapshotStorage,
    MemorySnapshotStorage,
    SnapshotStorage,
    migrate_snapshot,
)
from .store import EntityStore, KeyState, PageState, StoreStatus, UploadTicket
from .stores import BookStore, ContactStore, MediaStore, RepositoryStore, StoreSet, build_stores

__all__ = [
    "ALL_SCHEMAS",
    "BookStore",
    "CURRENT_SNAPSHOT_VERSION",
    "ContactStore",
    "ContentOrchestrator",
    "EntitySchema",
    "EntityStore",
    "HealthReport",
    "IndexSpec",
    "JsonFileSnapshotStorage",
    "KeyState",
    "MediaStore",
    "MemorySnapshotStorage",
    "PageState",
    "RepositoryStore",
    "SnapshotStorage",
    "StoreSet",
    "StoreStatus",
    "UploadTicket",
    "build_stores",
    "migrate_snapshot",
]
