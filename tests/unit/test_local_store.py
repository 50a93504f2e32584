# =============================================================================
# tests/unit/test_local_store.py
# Unit Tests for the SQLite Local Store
# =============================================================================

import pytest
import numpy as np


class TestLocalStoreLifecycle:

    def test_file_store_survives_reopen(self, tmp_path, make_record):
        from spasi_core.offline.local_store import LocalStore

        path = tmp_path / "nested" / "spasi.db"
        with LocalStore(path) as store:
            store.put_case(make_record("draft_1"))

        with LocalStore(path) as store:
            assert store.get_case("draft_1").values == {"Nama_kasus": "Budi"}

    def test_closed_store_raises(self):
        from spasi_core.errors import LocalStorageError
        from spasi_core.offline.local_store import LocalStore

        store = LocalStore(":memory:")
        with pytest.raises(LocalStorageError):
            store.get_case("x")

    def test_open_is_idempotent(self, local_store):
        assert local_store.open() is local_store
        assert local_store.is_open


class TestCaseOperations:

    def test_put_and_get_roundtrip(self, local_store, make_record):
        from spasi_core.offline.records import CaseStatus

        record = make_record("draft_1", status=CaseStatus.DRAFT, Umur=5)
        local_store.put_case(record)

        loaded = local_store.get_case("draft_1")
        assert loaded == record

    def test_missing_case_is_none(self, local_store):
        assert local_store.get_case("nope") is None

    def test_resave_keeps_single_row_and_position(self, local_store, make_record):
        local_store.put_case(make_record("a", name="Ani"))
        local_store.put_case(make_record("b", name="Budi"))
        local_store.put_case(make_record("a", name="Ani Lestari"))

        summaries = local_store.list_index()
        assert [s.id for s in summaries] == ["a", "b"]
        assert summaries[0].patient_name == "Ani Lestari"

    def test_numpy_values_are_serialized(self, local_store, make_record):
        local_store.put_case(make_record("a", Umur=np.int64(7), Jumlah=np.float64(2.0)))

        assert local_store.get_case("a").values["Umur"] == 7

    def test_unserializable_value_raises_storage_error(self, local_store, make_record):
        from spasi_core.errors import LocalStorageError

        with pytest.raises(LocalStorageError) as exc_info:
            local_store.put_case(make_record("a", Foto=object()))

        assert exc_info.value.recoverable is False
        assert local_store.get_case("a") is None

    def test_delete_case(self, local_store, make_record):
        local_store.put_case(make_record("a"))

        assert local_store.delete_case("a") is True
        assert local_store.get_case("a") is None
        assert local_store.list_index() == []
        assert local_store.delete_case("a") is False


class TestReassignId:

    def test_reassign_leaves_exactly_one_record(self, local_store, make_record):
        local_store.put_case(make_record("draft_1", name="Ani"))
        local_store.put_case(make_record("draft_2", name="Budi"))

        record = local_store.reassign_id("draft_1", "srv-9")

        assert record.id == "srv-9"
        assert local_store.get_case("draft_1") is None
        assert local_store.get_case("srv-9").values == {"Nama_kasus": "Ani"}
        ids = [s.id for s in local_store.list_index()]
        assert ids == ["srv-9", "draft_2"]

    def test_reassign_onto_existing_id_leaves_one_row(self, local_store, make_record):
        local_store.put_case(make_record("srv-9", name="Stale"))
        local_store.put_case(make_record("draft_1", name="Fresh"))

        local_store.reassign_id("draft_1", "srv-9")

        summaries = local_store.list_index()
        assert [s.id for s in summaries] == ["srv-9"]
        assert summaries[0].patient_name == "Fresh"

    def test_reassign_unknown_raises(self, local_store):
        from spasi_core.errors import LocalStorageError

        with pytest.raises(LocalStorageError):
            local_store.reassign_id("ghost", "srv-1")

    def test_reassign_to_same_id_is_noop(self, local_store, make_record):
        local_store.put_case(make_record("srv-1"))

        assert local_store.reassign_id("srv-1", "srv-1").id == "srv-1"
        assert len(local_store.list_index()) == 1


class TestListing:

    def test_dangling_index_rows_are_filtered(self, local_store, make_record):
        local_store.put_case(make_record("a"))
        local_store.put_case(make_record("b", name="Citra"))
        # Simulate a crash that lost the record but kept its index row
        with local_store.transaction("test") as conn:
            conn.execute("DELETE FROM cases WHERE id = ?", ["a"])

        assert [s.id for s in local_store.list_index()] == ["b"]
        assert [r.id for r in local_store.list_cases()] == ["b"]

    def test_pending_cases(self, local_store, make_record):
        local_store.put_case(make_record("a", pending_sync=True))
        local_store.put_case(make_record("b", pending_sync=False))

        assert [r.id for r in local_store.pending_cases()] == ["a"]
        assert local_store.pending_count() == 1

    def test_summary_reflects_record(self, local_store, make_record):
        from spasi_core.offline.records import CaseStatus

        local_store.put_case(make_record("a", name=" Dewi ", status=CaseStatus.DRAFT, pending_sync=True))

        summary = local_store.list_index()[0]
        assert summary.patient_name == "Dewi"
        assert summary.status == CaseStatus.DRAFT
        assert summary.synced is False


class TestSettings:

    def test_roundtrip(self, local_store):
        local_store.set_setting("last_successful_sync", "2024-01-10T09:30:00")
        local_store.set_setting("counters", {"sent": 3})

        assert local_store.get_setting("last_successful_sync") == "2024-01-10T09:30:00"
        assert local_store.get_setting("counters") == {"sent": 3}
        assert local_store.get_setting("missing", "fallback") == "fallback"
