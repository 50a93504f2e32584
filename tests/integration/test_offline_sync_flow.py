# =============================================================================
# tests/integration/test_offline_sync_flow.py
# Integration Tests for the Offline-First Case Lifecycle
# =============================================================================
"""
End to end on one device: fill the wizard while offline, submit, reconnect,
and check that the resume list and the weekly report follow the case.
"""

import pytest
import pandas as pd


@pytest.fixture
def device(local_store, fake_remote, clock):
    """Sync stack for one device, starting offline."""
    from spasi_core.offline.connection_manager import ConnectionManager
    from spasi_core.offline.sync_engine import RemoteSync
    from spasi_core.services.case_repository import CaseRepository
    from spasi_core.services.report_service import ReportService

    connection = ConnectionManager("https://demo.supabase.co")
    connection.force_offline()
    sync = RemoteSync(
        local_store,
        fake_remote,
        connection,
        current_user=lambda: {"id": "user-1"},
        clock=clock,
    )
    return {
        "connection": connection,
        "sync": sync,
        "repository": CaseRepository(local_store, sync),
        "reports": ReportService(),
    }


class TestOfflineLifecycle:

    def test_draft_submit_reconnect(self, device, local_store, fake_remote, complete_values):
        from spasi_core.offline.records import CaseStatus, is_local_id
        from spasi_core.offline.sync_engine import SyncOutcome
        from spasi_core.services.form_session import FormSession

        session = FormSession("campak-rubela", "mr-01", device["sync"])
        for key, value in complete_values.items():
            session.set_value(key, value)

        # Offline: both saves stay on the device under one client id
        draft = session.save_draft()
        assert draft.outcome == SyncOutcome.LOCAL_ONLY
        submitted = session.submit()
        assert submitted.outcome == SyncOutcome.LOCAL_ONLY
        assert submitted.case_id == draft.case_id
        assert is_local_id(session.case_id)

        summaries = device["repository"].list_cases()
        assert [s.patient_name for s in summaries] == ["Budi Santoso"]
        assert summaries[0].synced is False
        assert fake_remote.calls == []

        # Reconnect drains the backlog and the server id replaces the client id
        device["connection"].force_online()

        assert list(fake_remote.rows) == ["srv-1"]
        assert fake_remote.rows["srv-1"]["status"] == "submitted"
        assert local_store.get_case(draft.case_id) is None
        record = local_store.get_case("srv-1")
        assert record.status == CaseStatus.SUBMITTED
        assert record.pending_sync is False

        # The open session keeps editing the same case
        session.set_value("Keadaan_saat_ini", "Died")
        result = session.submit()
        assert result.outcome == SyncOutcome.SYNCED
        assert result.case_id == "srv-1"
        assert session.case_id == "srv-1"
        assert [op for op, _ in fake_remote.calls] == ["create", "update"]
        assert [s.id for s in local_store.list_index()] == ["srv-1"]

        summary = device["reports"].weekly_summary(device["repository"].list_records())
        assert list(summary["week_start"]) == [pd.Timestamp("2024-01-08")]
        assert list(summary["total"]) == [1]
        assert list(summary["died"]) == [1]

    def test_failed_remote_keeps_everything_local(self, device, local_store, fake_remote, complete_values):
        from spasi_core.offline.sync_engine import SyncOutcome

        device["connection"].force_online()
        fake_remote.fail = True

        result = device["sync"].submit(complete_values, "campak-rubela", "mr-01")

        assert result.outcome == SyncOutcome.SYNC_FAILED
        assert local_store.pending_count() == 1
        assert [s.patient_name for s in device["repository"].list_cases()] == ["Budi Santoso"]

        fake_remote.fail = False
        results = device["sync"].retry_pending()

        assert [r.outcome for r in results] == [SyncOutcome.SYNCED]
        assert local_store.pending_count() == 0

    def test_remote_cases_from_another_device(self, device, local_store, fake_remote, make_record):
        device["connection"].force_online()
        fake_remote.rows["srv-50"] = {
            "id": "srv-50", "user_id": "user-1", "disease": "campak-rubela", "form": "mr-01",
            "status": "completed", "pasien_nama": "Dewi", "kondisi_akhir": "Sembuh",
            "created_at": "2024-01-02T03:00:00+00:00", "submitted_at": "2024-01-02T10:00:00",
        }
        local_store.put_case(make_record("submit_local", name="Eko"))

        result = device["reports"].weekly_report(device["repository"], include_remote=True)

        assert result.success
        assert list(result.data["total"]) == [2]
        assert list(result.data["recovered"]) == [1]

        assert device["sync"].pull_remote() == 1
        names = [s.patient_name for s in device["repository"].list_cases()]
        assert names == ["Eko", "Dewi"]
