# =============================================================================
# spasi_core/offline/field_mapping.py
# Form Values <-> Remote Table Translation
# =============================================================================
"""
Alias table between the dynamic form-values map and the fixed columns of the
remote ``kasus_mr01`` table.

Each remote column lists the historical names the same data point has had
across schema revisions. Lookups walk that list in order and the first
alias holding a value wins. This module is the only place that knows about
aliases; the rest of the core works with schema field ids.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from spasi_core.forms.dependencies import is_filled
from spasi_core.forms.schema import parse_date

TEXT = "text"
DATE = "date"
NUMBER = "number"


@dataclass(frozen=True)
class RemoteColumn:
    """A fixed remote column and the form keys that may feed it."""
    name: str
    aliases: Tuple[str, ...]
    kind: str = TEXT


def _col(name: str, *aliases: str, kind: str = TEXT) -> RemoteColumn:
    return RemoteColumn(name=name, aliases=(name,) + aliases, kind=kind)


REMOTE_COLUMNS: Tuple[RemoteColumn, ...] = (
    # Reporter
    _col("pelapor_nama", "Pelapor_nama", "nama_pelapor", "Nama_pelapor"),
    _col("pelapor_jabatan", "Pelapor_jabatan"),
    _col("pelapor_telp", "Pelapor_telp"),
    _col("pelapor_email", "Pelapor_email"),
    _col("tanggal_lapor", "Tanggal_lapor", kind=DATE),
    # Patient
    _col("pasien_nama", "Pasien_nama", "nama_pasien", "Nama_pasien", "Nama_kasus"),
    _col("pasien_nik", "Pasien_nik", "nik_pasien", "NIK_pasien"),
    _col("pasien_tgl_lahir", "Pasien_tgl_lahir", "tgl_lahir_pasien", "Tanggal_lahir_pasien",
         "Tanggal_lahir", kind=DATE),
    _col("pasien_umur", "Pasien_umur", "umur_pasien", "Umur_pasien", "Umur", kind=NUMBER),
    _col("pasien_jk", "Pasien_jk", "jenis_kelamin", "Jenis_kelamin"),
    _col("pasien_alamat", "Pasien_alamat", "alamat_pasien", "Alamat_pasien", "Alamat"),
    _col("pasien_rt_rw", "Pasien_rt_rw"),
    _col("pasien_kelurahan", "Pasien_kelurahan", "Kelurahan"),
    _col("pasien_kecamatan", "Pasien_kecamatan", "Kecamatan"),
    # Clinical
    _col("tanggal_onset", "Tanggal_onset", kind=DATE),
    _col("gejala_demam", "Gejala_demam", "demam", "Demam"),
    _col("gejala_ruam", "Gejala_ruam", "ruam", "Ruam", "Ruam_makulopopular"),
    _col("gejala_batuk", "Gejala_batuk", "batuk", "Batuk"),
    _col("gejala_pilek", "Gejala_pilek", "pilek", "Pilek"),
    _col("gejala_mata_merah", "Gejala_mata_merah", "Mata_Merah"),
    _col("gejala_lain", "Gejala_lain", "Sebutkan_gejala_lainnya"),
    # Treatment
    _col("sedang_dirawat", "Sedang_dirawat", "Apakah_kasus_dirawat_di_RS"),
    _col("rumah_sakit", "Rumah_sakit", "Nama_Rumah_Sakit"),
    _col("tanggal_dirawat", "Tanggal_dirawat", "Tanggal_masuk_rawat_inap", kind=DATE),
    _col("obat_yang_diminum", "Obat_yang_diminum"),
    _col("riwayat_rawat_inap", "Riwayat_rawat_inap"),
    # Vaccination
    _col("status_imunisasi", "Status_imunisasi"),
    _col("vaksin_terakhir", "Vaksin_terakhir"),
    _col("tanggal_vaksin_terakhir", "Tanggal_vaksin_terakhir", kind=DATE),
    _col("tempat_imunisasi", "Tempat_imunisasi"),
    _col("catatan_imunisasi", "Catatan_imunisasi"),
    # Epidemiology
    _col("kontak_kasus_lain", "Kontak_kasus_lain", "Ada_anggota_sakit_sama"),
    _col("bepergian_2_minggu", "Bepergian_2_minggu", "Berpergian_1_bulan_terakhir"),
    _col("tempat_bepergian", "Tempat_bepergian", "Lokasi_perjalanan"),
    _col("tanggal_bepergian", "Tanggal_bepergian", "Tanggal_pergi", kind=DATE),
    _col("sumber_infeksi", "Sumber_infeksi"),
    # Specimens
    _col("spesimen_diambil", "Spesimen_diambil", "Spesimen_darah_diambil", "Spesimen_lain_diambil"),
    _col("jenis_spesimen", "Jenis_spesimen", "Jenis_sampel_darah", "Jenis_spesimen_lain"),
    _col("tanggal_pengambilan", "Tanggal_pengambilan", "Tanggal_ambil_spesimen_darah",
         "Tanggal_ambil_spesimen_lain", kind=DATE),
    _col("tempat_pemeriksaan", "Tempat_pemeriksaan"),
    _col("hasil_lab", "Hasil_lab"),
    # Final condition
    _col("klasifikasi_akhir", "Klasifikasi_akhir"),
    _col("kondisi_akhir", "Kondisi_akhir", "Keadaan_saat_ini"),
    _col("tanggal_meninggal", "Tanggal_meninggal", kind=DATE),
    _col("penyebab_kematian", "Penyebab_kematian"),
    _col("tindak_lanjut", "Tindak_lanjut"),
    # Close contacts
    _col("jumlah_kontak", "Jumlah_kontak", "Jumlah", kind=NUMBER),
    _col("kontak_keluarga", "Kontak_keluarga", kind=NUMBER),
    _col("kontak_sekolah", "Kontak_sekolah", kind=NUMBER),
    _col("kontak_lain", "Kontak_lain", kind=NUMBER),
    _col("catatan_kontak", "Catatan_kontak"),
    # Field officer
    _col("petugas_nama", "Petugas_nama"),
    _col("petugas_nip", "Petugas_nip"),
    _col("petugas_jabatan", "Petugas_jabatan"),
    _col("tanggal_pengisian", "Tanggal_pengisian", kind=DATE),
    _col("tanda_tangan", "Tanda_tangan"),
    _col("koordinat_lokasi", "Koordinat_lokasi"),
)

COLUMNS_BY_NAME: Dict[str, RemoteColumn] = {c.name: c for c in REMOTE_COLUMNS}

# Record-level columns that never belong to the form values
META_COLUMNS = frozenset({
    "id", "disease", "form", "status", "user_id", "created_at", "updated_at",
    "last_modified", "submitted_at", "pending_sync",
})

PATIENT_NAME = "pasien_nama"
FINAL_CONDITION = "kondisi_akhir"


def resolve_alias(values: Mapping[str, Any], column: str) -> Any:
    """First filled value among the column's aliases, in priority order; blanks are skipped."""
    for alias in COLUMNS_BY_NAME[column].aliases:
        value = values.get(alias)
        if is_filled(value):
            return value
    return None


def resolve_patient_name(values: Mapping[str, Any]) -> str:
    """Patient name for grouping; empty string when none is recorded."""
    name = resolve_alias(values, PATIENT_NAME)
    return str(name).strip() if is_filled(name) else ""


def format_date_for_db(value: Any) -> Optional[str]:
    """YYYY-MM-DD, or None when missing or unparsable."""
    parsed = parse_date(value)
    return parsed.isoformat() if parsed else None


def _to_number(value: Any):
    if not is_filled(value) or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    return int(number) if number.is_integer() else number


def _coerce(column: RemoteColumn, value: Any) -> Any:
    if column.kind == DATE:
        return format_date_for_db(value)
    if column.kind == NUMBER:
        return _to_number(value)
    return value


def to_remote_row(values: Mapping[str, Any], base: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """
    Flatten form values into the remote table shape.

    Args:
        values: Form values keyed by field id (or any historical alias)
        base: Record-level columns (disease, form, status, user_id, ...)

    Returns:
        Row dict with every mapped column present (None when unknown)
    """
    row: Dict[str, Any] = dict(base or {})
    for column in REMOTE_COLUMNS:
        row[column.name] = _coerce(column, resolve_alias(values, column.name))
    return row


def from_remote_row(row: Mapping[str, Any], field_ids: Iterable[str] = ()) -> Dict[str, Any]:
    """
    Turn a remote row back into form values.

    Mapped columns are written under the schema field id among their aliases
    when there is one, so the form can be re-opened for editing. Unmapped,
    non-meta columns are kept as they are.
    """
    known = set(field_ids)
    values: Dict[str, Any] = {}

    for key, value in row.items():
        if key in META_COLUMNS or value is None:
            continue
        column = COLUMNS_BY_NAME.get(key)
        if column is None:
            values.setdefault(key, value)
            continue
        target = next((alias for alias in column.aliases if alias in known), key)
        values[target] = value

    return values
