# =============================================================================
# spasi_core/offline/remote_store.py
# Remote Case Store (Supabase)
# =============================================================================
"""
RemoteCaseStore is the narrow interface RemoteSync talks to. The production
implementation writes to the ``kasus_mr01`` table through the Supabase
client; tests plug in an in-memory fake.

Every call is bounded by the PostgREST client timeout. Failures of any kind
(network, rejection, empty response) surface as RemoteSyncError.
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from supabase import Client, ClientOptions, create_client

from spasi_core.config import SpasiSettings
from spasi_core.errors import ConfigurationError, RemoteSyncError
from spasi_core.logging import get_logger

logger = get_logger(__name__)


class RemoteCaseStore(Protocol):
    """Remote persistence for case rows. Rows are flat column dicts."""

    def create(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a row; return it as stored, including the server id."""
        ...

    def update(self, case_id: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Replace a row's columns; return it as stored."""
        ...

    def get(self, case_id: str) -> Optional[Dict[str, Any]]:
        """Fetch one row, or None when the id is unknown."""
        ...

    def list_by_owner(self, owner_user_id: str) -> List[Dict[str, Any]]:
        """All rows owned by a user, newest first."""
        ...


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SupabaseCaseStore:
    """
    RemoteCaseStore backed by a Supabase table.

    Usage:
        store = SupabaseCaseStore.from_settings(load_settings())
        saved = store.create(row)
        print(saved["id"])
    """

    def __init__(self, client: Client, table_name: str = "kasus_mr01"):
        self.client = client
        self.table_name = table_name

    @classmethod
    def from_settings(cls, settings: SpasiSettings) -> SupabaseCaseStore:
        """Create a client from resolved settings."""
        if not settings.remote_configured:
            raise ConfigurationError(
                "Supabase url and key are required for the remote case store",
                config_key="supabase",
            )
        options = ClientOptions(postgrest_client_timeout=settings.remote_timeout)
        client = create_client(settings.supabase_url, settings.supabase_key, options=options)
        logger.info(f"Supabase case store ready (table: {settings.cases_table})")
        return cls(client, settings.cases_table)

    def _first(self, response, case_id: Optional[str], operation: str) -> Dict[str, Any]:
        if not response.data:
            raise RemoteSyncError(
                f"Remote {operation} returned no data",
                case_id=case_id,
                operation=operation,
                table=self.table_name,
            )
        return response.data[0]

    def create(self, row: Dict[str, Any]) -> Dict[str, Any]:
        now = _utc_now()
        payload = {**row, "created_at": now, "updated_at": now, "last_modified": now}
        payload.pop("id", None)
        try:
            response = self.client.table(self.table_name).insert([payload]).execute()
        except Exception as e:
            raise RemoteSyncError(
                f"Remote create failed: {e}", operation="create", table=self.table_name
            ) from e
        saved = self._first(response, None, "create")
        logger.info(f"Created remote case {saved.get('id')}")
        return saved

    def update(self, case_id: str, row: Dict[str, Any]) -> Dict[str, Any]:
        now = _utc_now()
        payload = {**row, "updated_at": now, "last_modified": now}
        payload.pop("id", None)
        payload.pop("created_at", None)
        try:
            response = (
                self.client.table(self.table_name)
                .update(payload)
                .eq("id", case_id)
                .execute()
            )
        except Exception as e:
            raise RemoteSyncError(
                f"Remote update failed: {e}", case_id=case_id, operation="update", table=self.table_name
            ) from e
        saved = self._first(response, case_id, "update")
        logger.info(f"Updated remote case {case_id}")
        return saved

    def get(self, case_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = (
                self.client.table(self.table_name)
                .select("*")
                .eq("id", case_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise RemoteSyncError(
                f"Remote get failed: {e}", case_id=case_id, operation="get", table=self.table_name
            ) from e
        return response.data[0] if response.data else None

    def list_by_owner(self, owner_user_id: str) -> List[Dict[str, Any]]:
        try:
            response = (
                self.client.table(self.table_name)
                .select("*")
                .eq("user_id", owner_user_id)
                .order("created_at", desc=True)
                .execute()
            )
        except Exception as e:
            raise RemoteSyncError(
                f"Remote list failed: {e}", operation="list_by_owner", table=self.table_name
            ) from e
        return list(response.data or [])
