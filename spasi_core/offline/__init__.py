# =============================================================================
# spasi_core/offline/__init__.py
# Offline-First Case Storage and Synchronization
# =============================================================================
"""
Offline-First Case Storage

Every save lands on the device first; the remote store is best effort.

Architecture:
------------
┌─────────────────────────────────────────────────────────────┐
│                        FormSession                           │
│               (save_draft / submit / autosave)               │
└─────────────────────────────────────────────────────────────┘
                             │
                             ▼
┌─────────────────────────────────────────────────────────────┐
│                        RemoteSync                            │
│         (local write always, then remote best effort)        │
└─────────────────────────────────────────────────────────────┘
        │                    │                     │
        ▼                    ▼                     ▼
┌──────────────┐   ┌──────────────────┐   ┌──────────────────┐
│  LocalStore  │   │ ConnectionManager│   │ SupabaseCaseStore│
│   (SQLite)   │   │ (online/offline) │   │   (kasus_mr01)   │
└──────────────┘   └──────────────────┘   └──────────────────┘

Usage:
------
from spasi_core.offline import LocalStore, RemoteSync

with LocalStore(settings.local_db_path) as store:
    sync = RemoteSync(store)
    result = sync.save_draft(values, "campak-rubela", "mr-01")
    print(result.outcome)  # SyncOutcome.LOCAL_ONLY
"""

from spasi_core.offline.records import (
    CaseRecord,
    CaseStatus,
    CaseSummary,
    generate_case_id,
    is_local_id,
)

from spasi_core.offline.local_store import LocalStore

from spasi_core.offline.field_mapping import (
    REMOTE_COLUMNS,
    resolve_alias,
    resolve_patient_name,
    to_remote_row,
    from_remote_row,
)

from spasi_core.offline.remote_store import (
    RemoteCaseStore,
    SupabaseCaseStore,
)

from spasi_core.offline.connection_manager import (
    ConnectionManager,
    ConnectionState,
    ConnectionStatus,
)

from spasi_core.offline.sync_engine import (
    RemoteSync,
    SyncOutcome,
    SyncResult,
)

from spasi_core.offline.autosave import AutosaveScheduler

__all__ = [
    # Records
    "CaseRecord",
    "CaseStatus",
    "CaseSummary",
    "generate_case_id",
    "is_local_id",
    # Local
    "LocalStore",
    # Field mapping
    "REMOTE_COLUMNS",
    "resolve_alias",
    "resolve_patient_name",
    "to_remote_row",
    "from_remote_row",
    # Remote
    "RemoteCaseStore",
    "SupabaseCaseStore",
    # Connection
    "ConnectionManager",
    "ConnectionState",
    "ConnectionStatus",
    # Sync
    "RemoteSync",
    "SyncOutcome",
    "SyncResult",
    "AutosaveScheduler",
]
