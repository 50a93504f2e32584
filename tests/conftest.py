# =============================================================================
# tests/conftest.py
# Pytest Configuration and Fixtures
# =============================================================================

import itertools

import pytest
from datetime import datetime
from typing import Dict, List, Optional
from unittest.mock import MagicMock


FIXED_NOW = datetime(2024, 1, 10, 9, 30, 0)


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================

class FakeRemoteStore:
    """In-memory RemoteCaseStore that can be switched to fail."""

    def __init__(self):
        self.rows: Dict[str, Dict] = {}
        self.calls: List[tuple] = []
        self.fail = False
        self._ids = itertools.count(1)

    def _check(self, operation, case_id=None):
        self.calls.append((operation, case_id))
        if self.fail:
            from spasi_core.errors import RemoteSyncError
            raise RemoteSyncError("remote unavailable", case_id=case_id, operation=operation)

    def create(self, row: Dict) -> Dict:
        self._check("create")
        case_id = f"srv-{next(self._ids)}"
        saved = {**row, "id": case_id, "created_at": "2024-01-10T02:30:00+00:00"}
        self.rows[case_id] = saved
        return dict(saved)

    def update(self, case_id: str, row: Dict) -> Dict:
        self._check("update", case_id)
        if case_id not in self.rows:
            from spasi_core.errors import RemoteSyncError
            raise RemoteSyncError("no such row", case_id=case_id, operation="update")
        self.rows[case_id] = {**self.rows[case_id], **row, "id": case_id}
        return dict(self.rows[case_id])

    def get(self, case_id: str) -> Optional[Dict]:
        self._check("get", case_id)
        row = self.rows.get(case_id)
        return dict(row) if row else None

    def list_by_owner(self, owner_user_id: str) -> List[Dict]:
        self._check("list_by_owner")
        return [dict(r) for r in self.rows.values() if r.get("user_id") == owner_user_id]


# =============================================================================
# CORE FIXTURES
# =============================================================================

@pytest.fixture
def clock():
    """Pinned 'now' for timestamps and the future-date rule"""
    return lambda: FIXED_NOW


@pytest.fixture
def local_store():
    """Open in-memory LocalStore"""
    from spasi_core.offline.local_store import LocalStore

    store = LocalStore(":memory:").open()
    yield store
    store.close()


@pytest.fixture
def fake_remote():
    return FakeRemoteStore()


@pytest.fixture
def connection():
    """ConnectionManager that never touches the network"""
    from spasi_core.offline.connection_manager import ConnectionManager

    manager = ConnectionManager("https://demo.supabase.co")
    manager.force_online()
    return manager


@pytest.fixture
def local_sync(local_store, clock):
    """RemoteSync for a device without a remote store"""
    from spasi_core.offline.sync_engine import RemoteSync

    return RemoteSync(local_store, clock=clock)


@pytest.fixture
def online_sync(local_store, fake_remote, connection, clock):
    """RemoteSync with a reachable fake remote store"""
    from spasi_core.offline.sync_engine import RemoteSync

    return RemoteSync(
        local_store,
        fake_remote,
        connection,
        current_user=lambda: {"id": "user-1", "email": "nurse@puskesmas.id"},
        clock=clock,
    )


@pytest.fixture
def sections():
    from spasi_core.forms import get_form_sections

    return get_form_sections("campak-rubela", "mr-01")


@pytest.fixture
def complete_values():
    """Answers that pass full-form validation on FIXED_NOW"""
    return {
        # Reporter
        "Kabupaten": "Jakarta Pusat",
        "Nomor_EPID": "EPID-2024-001",
        "Kasus_KLB": "No",
        "Sumber_laporan": "Puskesmas",
        "Nama_unit_pelapor": "Puskesmas Menteng",
        "Tanggal_terima_laporan": "2024-01-08",
        "Tanggal_pelacakan": "2024-01-09",
        # Case
        "Nama_kasus": "Budi Santoso",
        "Jenis_kelamin": "Male",
        "Tanggal_lahir": "2018-05-20",
        "Umur": 5,
        "Alamat": "Jl. Merdeka 1",
        "Kecamatan": "Menteng",
        "Kelurahan": "Gondangdia",
        "Nama_orangtua_wali": "Siti",
        "No_kontak_orangtua_wali": "+62 812-3456-7890",
        # Clinical
        "Demam": "Yes",
        "Tanggal_mulai_demam": "2024-01-05",
        "Ruam_makulopopular": "Yes",
        "Tanggal_mulai_rash": "2024-01-07",
        "Gejala_lain": "No",
        "Batuk": "Yes",
        "Pilek": "No",
        "Mata_Merah": "No",
        "Adenopathy": "No",
        "Arthralgia": "No",
        "Kehamilan": "No",
        "Lainnya": "No",
        # Treatment
        "Apakah_kasus_dirawat_di_RS": "No",
        # Vaccination
        "Imunisasi_campak_MR_9_bulan": "Yes",
        "Sumber_info_MR_9_bulan": "Immunization card/book",
        "Imunisasi_campak_MR_18_bulan": "Unknown",
        "Imunisasi_campak_MR_kelas_1_SD": "Unknown",
        "Pernah_MMR_sebelumnya": "No",
        "Pernah_MR_kampanye": "Unknown",
        # Epidemiology
        "Pemberian_vitamin_A": "Yes",
        "Ada_anggota_sakit_sama": "No",
        "Berpergian_1_bulan_terakhir": "No",
        "Hubungan_epidemiologi": "Under investigation",
        # Specimens
        "Spesimen_darah_diambil": "No",
        "Spesimen_lain_diambil": "No",
        # Final condition
        "Keadaan_saat_ini": "Recovered",
    }


@pytest.fixture
def make_record():
    """Factory for CaseRecord objects with sensible defaults"""
    from spasi_core.offline.records import CaseRecord, CaseStatus

    def _make(case_id, name="Budi", status=CaseStatus.SUBMITTED, disease="campak-rubela",
              form="mr-01", timestamp="2024-01-03T10:00:00", pending_sync=False, **values):
        case_values = {"Nama_kasus": name} if name is not None else {}
        case_values.update(values)
        return CaseRecord(
            id=case_id,
            disease=disease,
            form=form,
            status=status,
            values=case_values,
            created_at=timestamp,
            last_modified_at=timestamp,
            submitted_at=timestamp if status != CaseStatus.DRAFT else None,
            pending_sync=pending_sync,
        )

    return _make


# =============================================================================
# MOCK FIXTURES
# =============================================================================

@pytest.fixture
def mock_streamlit(monkeypatch):
    """Mock the Streamlit module as seen by the core's UI-facing modules"""
    mock_st = MagicMock()
    mock_st.session_state = {}
    mock_st.cache_data = lambda f: f
    mock_st.cache_resource = lambda f: f

    import spasi_core.errors.handlers as handlers
    import spasi_core.auth.session as session
    import spasi_core.config as config

    monkeypatch.setattr(handlers, "st", mock_st)
    monkeypatch.setattr(session, "st", mock_st)
    monkeypatch.setattr(config, "st", mock_st)

    yield mock_st


@pytest.fixture
def mock_supabase():
    """Mock Supabase client"""
    mock_client = MagicMock()
    mock_client.table.return_value.select.return_value.eq.return_value.limit.return_value.execute.return_value.data = []
    mock_client.table.return_value.insert.return_value.execute.return_value.data = [{"id": "srv-1"}]
    return mock_client

