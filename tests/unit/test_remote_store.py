# =============================================================================
# tests/unit/test_remote_store.py
# Unit Tests for the Supabase Case Store
# =============================================================================

import pytest
from unittest.mock import MagicMock


class TestSupabaseCaseStore:

    def test_create_returns_stored_row(self, mock_supabase):
        from spasi_core.offline.remote_store import SupabaseCaseStore

        store = SupabaseCaseStore(mock_supabase)
        saved = store.create({"id": "draft_1", "pasien_nama": "Budi"})

        assert saved == {"id": "srv-1"}
        mock_supabase.table.assert_called_with("kasus_mr01")
        payload = mock_supabase.table.return_value.insert.call_args[0][0][0]
        assert "id" not in payload
        assert payload["pasien_nama"] == "Budi"
        assert payload["created_at"] == payload["updated_at"] == payload["last_modified"]

    def test_create_without_data_raises(self, mock_supabase):
        from spasi_core.errors import RemoteSyncError
        from spasi_core.offline.remote_store import SupabaseCaseStore

        mock_supabase.table.return_value.insert.return_value.execute.return_value.data = []

        with pytest.raises(RemoteSyncError):
            SupabaseCaseStore(mock_supabase).create({"pasien_nama": "Budi"})

    def test_client_errors_are_wrapped(self, mock_supabase):
        from spasi_core.errors import RemoteSyncError
        from spasi_core.offline.remote_store import SupabaseCaseStore

        mock_supabase.table.return_value.insert.return_value.execute.side_effect = ConnectionError("down")

        with pytest.raises(RemoteSyncError) as exc_info:
            SupabaseCaseStore(mock_supabase, "cases").create({})

        assert exc_info.value.details == {"operation": "create", "table": "cases"}

    def test_update_filters_by_id(self, mock_supabase):
        from spasi_core.offline.remote_store import SupabaseCaseStore

        query = mock_supabase.table.return_value.update.return_value
        query.eq.return_value.execute.return_value.data = [{"id": "srv-1", "status": "submitted"}]

        saved = SupabaseCaseStore(mock_supabase).update(
            "srv-1", {"status": "submitted", "created_at": "old"}
        )

        assert saved["status"] == "submitted"
        query.eq.assert_called_once_with("id", "srv-1")
        payload = mock_supabase.table.return_value.update.call_args[0][0]
        assert "created_at" not in payload

    def test_get(self, mock_supabase):
        from spasi_core.offline.remote_store import SupabaseCaseStore

        store = SupabaseCaseStore(mock_supabase)
        assert store.get("srv-404") is None

        select = mock_supabase.table.return_value.select.return_value
        select.eq.return_value.limit.return_value.execute.return_value.data = [{"id": "srv-1"}]
        assert store.get("srv-1") == {"id": "srv-1"}

    def test_list_by_owner(self):
        from spasi_core.offline.remote_store import SupabaseCaseStore

        client = MagicMock()
        ordered = client.table.return_value.select.return_value.eq.return_value.order
        ordered.return_value.execute.return_value.data = [{"id": "srv-2"}, {"id": "srv-1"}]

        rows = SupabaseCaseStore(client).list_by_owner("user-1")

        assert [r["id"] for r in rows] == ["srv-2", "srv-1"]
        client.table.return_value.select.return_value.eq.assert_called_once_with("user_id", "user-1")
        ordered.assert_called_once_with("created_at", desc=True)

    def test_from_settings_requires_credentials(self):
        from spasi_core.config import SpasiSettings
        from spasi_core.errors import ConfigurationError
        from spasi_core.offline.remote_store import SupabaseCaseStore

        with pytest.raises(ConfigurationError):
            SupabaseCaseStore.from_settings(SpasiSettings())

    def test_from_settings_builds_client(self, monkeypatch):
        import spasi_core.offline.remote_store as remote_store
        from spasi_core.config import SpasiSettings

        create_client = MagicMock()
        monkeypatch.setattr(remote_store, "create_client", create_client)

        settings = SpasiSettings(supabase_url="https://demo.supabase.co", supabase_key="anon", cases_table="cases")
        store = remote_store.SupabaseCaseStore.from_settings(settings)

        assert store.client is create_client.return_value
        assert store.table_name == "cases"
        assert create_client.call_args[0] == ("https://demo.supabase.co", "anon")
