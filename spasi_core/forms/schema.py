# =============================================================================
# spasi_core/forms/schema.py
# Declarative Case-Report Form Schema
# =============================================================================
"""
FormSchema - the static field graph of the MR-01 case-record form.

Field ids match the columns of the remote ``kasus_mr01`` table and are
unique across the whole schema, because ``depends_on`` references are
global. Callers always receive a fresh deep copy of the section list, so
UI flags such as ``is_expanded`` can be mutated freely.
"""

from __future__ import annotations
import copy
from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from spasi_core.errors import SchemaContractError
from spasi_core.logging import get_logger

logger = get_logger(__name__)


class FieldKind(Enum):
    """Input kinds understood by the validator and renderers."""
    TEXT = "text"
    PHONE = "phone"
    INTEGER = "integer"
    MULTILINE = "multiline"
    ENUM_SINGLE = "enum-single"        # dropdown
    ENUM_CHOICE = "enum-choice"        # radio buttons
    DATE = "date"
    COMPUTED = "computed"
    DERIVED_READONLY = "derived-readonly"


YES = "Yes"
NO = "No"
UNKNOWN = "Unknown"

YES_NO = (YES, NO)
YES_NO_UNKNOWN = (YES, NO, UNKNOWN)

AGE_FROM_BIRTHDATE = "age-from-birthdate"


@dataclass(frozen=True)
class FieldDefinition:
    """A single form input. Immutable once defined."""
    id: str
    label: str
    kind: FieldKind
    required: bool = False
    options: Tuple[str, ...] = ()
    depends_on: Optional[str] = None
    compute_rule: Optional[str] = None
    source_field: Optional[str] = None  # input of compute_rule
    placeholder: Optional[str] = None
    tooltip: Optional[str] = None


@dataclass
class SectionDefinition:
    """One wizard step. ``is_complete`` is derived, ``is_expanded`` is UI-only."""
    id: str
    title: str
    fields: Tuple[FieldDefinition, ...]
    description: Optional[str] = None
    is_expanded: bool = False
    is_complete: bool = False

    @property
    def field_ids(self) -> List[str]:
        return [f.id for f in self.fields]


# =============================================================================
# DISEASE / FORM REGISTRY
# =============================================================================

DISEASE_NAMES: Dict[str, str] = {
    "campak-rubela": "Measles-Rubella",
    "difteri": "Diphtheria",
    "pertusis": "Pertussis",
    "tetanus": "Tetanus",
    "polio": "Polio",
    "hepatitis": "Hepatitis",
}

FORM_NAMES: Dict[str, str] = {
    "mr-01": "MR-01 - Case Record Form",
    "mr-01-ld": "MR-01 LD - Follow-up Case Record Form",
    "mr-04": "MR-04 - Investigation Form",
    "formulir-05": "Form 05 - Weekly Reporting Form",
    "pemantauan-kontak": "Contact Monitoring - Close Contact Record",
    "hasil-lab": "Lab Results - Laboratory Results",
}

# Dropdown options
DISTRICT_OPTIONS = (
    "Jakarta Pusat", "Jakarta Utara", "Jakarta Selatan", "Jakarta Timur", "Jakarta Barat",
    "Bogor", "Depok", "Tangerang", "Bekasi", "Bandung", "Surabaya", "Medan", "Makassar",
)

SUBDISTRICT_OPTIONS = (
    "Menteng", "Tanah Abang", "Gambir", "Sawah Besar", "Kemayoran",
    "Senen", "Cempaka Putih", "Johar Baru", "Kelapa Gading", "Tanjung Priok",
)

INFO_SOURCE_OPTIONS = (
    "Immunization card/book", "Mother/family recall", "Medical record", "Unknown",
)


def _field(field_id: str, label: str, kind: FieldKind, **kwargs) -> FieldDefinition:
    options = kwargs.pop("options", ())
    return FieldDefinition(id=field_id, label=label, kind=kind, options=tuple(options), **kwargs)


T = FieldKind

_MR01_SECTIONS: Tuple[SectionDefinition, ...] = (
    SectionDefinition(
        id="info-pelapor",
        title="REPORTER INFO",
        description="Reporter and report source",
        is_expanded=True,
        fields=(
            _field("Kabupaten", "District/City", T.ENUM_SINGLE, required=True, options=DISTRICT_OPTIONS),
            _field("Nomor_EPID", "EPID Number", T.TEXT, required=True, placeholder="e.g. EPID-2025-001"),
            _field("Kasus_KLB", "Is this case part of an outbreak (KLB)?", T.ENUM_CHOICE,
                   required=True, options=YES_NO),
            _field("KLB_ke", "Outbreak sequence no.", T.INTEGER, depends_on="Kasus_KLB"),
            _field("Nomor_KLB", "Outbreak number", T.TEXT, depends_on="Kasus_KLB",
                   placeholder="e.g. KLB-2025-001"),
            _field("Sumber_laporan", "Report source", T.ENUM_SINGLE, required=True,
                   options=("Puskesmas", "Hospital", "Private practice", "Community", "Other")),
            _field("Nama_unit_pelapor", "Reporting unit", T.TEXT, required=True,
                   placeholder="Health facility name"),
            _field("Tanggal_terima_laporan", "Date report received", T.DATE, required=True),
            _field("Tanggal_pelacakan", "Date of tracing", T.DATE, required=True),
        ),
    ),
    SectionDefinition(
        id="info-kasus",
        title="CASE INFO",
        description="Patient identity and demographics",
        fields=(
            _field("Nama_kasus", "Patient full name", T.TEXT, required=True),
            _field("Jenis_kelamin", "Sex", T.ENUM_CHOICE, required=True, options=("Male", "Female")),
            _field("Tanggal_lahir", "Date of birth", T.DATE, required=True),
            _field("Umur", "Age (years)", T.COMPUTED, compute_rule=AGE_FROM_BIRTHDATE,
                   source_field="Tanggal_lahir",
                   tooltip="Calculated automatically from the date of birth"),
            _field("Alamat", "Full address", T.MULTILINE, required=True),
            _field("Kecamatan", "Subdistrict", T.ENUM_SINGLE, required=True, options=SUBDISTRICT_OPTIONS),
            _field("Kelurahan", "Village", T.TEXT, required=True),
            _field("Nama_orangtua_wali", "Parent/guardian name", T.TEXT, required=True),
            _field("No_kontak_orangtua_wali", "Parent/guardian phone", T.PHONE, required=True),
        ),
    ),
    SectionDefinition(
        id="info-klinis",
        title="CLINICAL INFO",
        description="Clinical signs and symptoms",
        fields=(
            _field("Demam", "Fever", T.ENUM_CHOICE, required=True, options=YES_NO),
            _field("Tanggal_mulai_demam", "Fever onset date", T.DATE, depends_on="Demam"),
            _field("Ruam_makulopopular", "Maculopapular rash", T.ENUM_CHOICE, required=True, options=YES_NO),
            _field("Tanggal_mulai_rash", "Rash onset date", T.DATE, depends_on="Ruam_makulopopular"),
            _field("Gejala_lain", "Other symptoms present?", T.ENUM_CHOICE, required=True, options=YES_NO),
            _field("Batuk", "Cough", T.ENUM_CHOICE, required=True, options=YES_NO),
            _field("Pilek", "Runny nose", T.ENUM_CHOICE, required=True, options=YES_NO),
            _field("Mata_Merah", "Red eyes (conjunctivitis)", T.ENUM_CHOICE, required=True, options=YES_NO),
            _field("Adenopathy", "Swollen lymph nodes", T.ENUM_CHOICE, required=True, options=YES_NO),
            _field("Lokasi_Adenopathy", "Lymph node location", T.ENUM_SINGLE, depends_on="Adenopathy",
                   options=("Neck", "Armpit", "Groin", "Multiple", "Other")),
            _field("Arthralgia", "Joint pain", T.ENUM_CHOICE, required=True, options=YES_NO),
            _field("Bagian_Sendi_Arthralgia", "Painful joints", T.ENUM_SINGLE, depends_on="Arthralgia",
                   options=("Hands", "Feet", "Knees", "Elbows", "Multiple", "Other")),
            _field("Kehamilan", "Pregnant? (female patients)", T.ENUM_CHOICE, required=True,
                   options=YES_NO_UNKNOWN),
            _field("Umur_kehamilan", "Gestational age (weeks)", T.INTEGER, depends_on="Kehamilan"),
            _field("Lainnya", "Other symptoms", T.ENUM_CHOICE, required=True, options=YES_NO),
            _field("Sebutkan_gejala_lainnya", "Describe other symptoms", T.MULTILINE, depends_on="Lainnya"),
        ),
    ),
    SectionDefinition(
        id="riwayat-pengobatan",
        title="TREATMENT HISTORY",
        description="Hospitalisation and treatment",
        fields=(
            _field("Apakah_kasus_dirawat_di_RS", "Hospitalised?", T.ENUM_CHOICE, required=True, options=YES_NO),
            _field("Nama_Rumah_Sakit", "Hospital name", T.TEXT, depends_on="Apakah_kasus_dirawat_di_RS"),
            _field("Tanggal_masuk_rawat_inap", "Admission date", T.DATE, depends_on="Apakah_kasus_dirawat_di_RS"),
            _field("Nomor_rekam_medik", "Medical record number", T.TEXT, depends_on="Apakah_kasus_dirawat_di_RS"),
            _field("Tanggal_keluar", "Discharge date", T.DATE, depends_on="Apakah_kasus_dirawat_di_RS"),
        ),
    ),
    SectionDefinition(
        id="riwayat-vaksinasi",
        title="VACCINATION HISTORY",
        description="Measles and rubella immunization history",
        fields=(
            _field("Imunisasi_campak_MR_9_bulan", "Measles/MR at 9 months", T.ENUM_CHOICE,
                   required=True, options=YES_NO_UNKNOWN),
            _field("Sumber_info_MR_9_bulan", "Source for MR 9 months", T.ENUM_SINGLE,
                   depends_on="Imunisasi_campak_MR_9_bulan", options=INFO_SOURCE_OPTIONS),
            _field("Imunisasi_campak_MR_18_bulan", "Measles/MR at 18 months", T.ENUM_CHOICE,
                   required=True, options=YES_NO_UNKNOWN),
            _field("Sumber_info_MR_18_bulan", "Source for MR 18 months", T.ENUM_SINGLE,
                   depends_on="Imunisasi_campak_MR_18_bulan", options=INFO_SOURCE_OPTIONS),
            _field("Imunisasi_campak_MR_kelas_1_SD", "Measles/MR in grade 1", T.ENUM_CHOICE,
                   required=True, options=YES_NO_UNKNOWN),
            _field("Sumber_info_MR_kelas_1_SD", "Source for MR grade 1", T.ENUM_SINGLE,
                   depends_on="Imunisasi_campak_MR_kelas_1_SD", options=INFO_SOURCE_OPTIONS),
            _field("Pernah_MMR_sebelumnya", "Previous MMR", T.ENUM_CHOICE,
                   required=True, options=YES_NO_UNKNOWN),
            _field("Sumber_info_MMR_sebelumnya", "Source for MMR", T.ENUM_SINGLE,
                   depends_on="Pernah_MMR_sebelumnya", options=INFO_SOURCE_OPTIONS),
            _field("Pernah_MR_kampanye", "MR campaign dose", T.ENUM_CHOICE,
                   required=True, options=YES_NO_UNKNOWN),
            _field("Sumber_info_MR_kampanye", "Source for MR campaign", T.ENUM_SINGLE,
                   depends_on="Pernah_MR_kampanye", options=INFO_SOURCE_OPTIONS),
            _field("Tanggal_vaksinasi_rubella_terakhir", "Last rubella vaccination date", T.DATE),
        ),
    ),
    SectionDefinition(
        id="info-epidemiologi",
        title="EPIDEMIOLOGY",
        description="Risk factors and exposure history",
        fields=(
            _field("Pemberian_vitamin_A", "Vitamin A given", T.ENUM_CHOICE, required=True,
                   options=YES_NO_UNKNOWN),
            _field("Ada_anggota_sakit_sama", "Household/contacts with same illness?", T.ENUM_CHOICE,
                   required=True, options=YES_NO),
            _field("Jumlah", "Number of people with same illness", T.INTEGER,
                   depends_on="Ada_anggota_sakit_sama"),
            _field("Berpergian_1_bulan_terakhir", "Travelled in the last month?", T.ENUM_CHOICE,
                   required=True, options=YES_NO),
            _field("Lokasi_perjalanan", "Travel destination", T.TEXT, depends_on="Berpergian_1_bulan_terakhir"),
            _field("Tanggal_pergi", "Departure date", T.DATE, depends_on="Berpergian_1_bulan_terakhir"),
            _field("Tanggal_kembali", "Return date", T.DATE, depends_on="Berpergian_1_bulan_terakhir"),
            _field("Hubungan_epidemiologi", "Epidemiological link", T.ENUM_SINGLE, required=True,
                   options=("Linked", "Not linked", "Under investigation")),
            _field("Rujuk_ke_nomor_KLB", "Related outbreak number", T.TEXT),
        ),
    ),
    SectionDefinition(
        id="info-spesimen",
        title="SPECIMENS",
        description="Laboratory specimen collection and shipment",
        fields=(
            _field("Spesimen_darah_diambil", "Blood specimen taken?", T.ENUM_CHOICE, required=True, options=YES_NO),
            _field("Jenis_sampel_darah", "Blood sample type", T.ENUM_SINGLE, depends_on="Spesimen_darah_diambil",
                   options=("Serum", "Whole Blood", "DBS (Dried Blood Spot)")),
            _field("Tanggal_ambil_spesimen_darah", "Blood specimen date", T.DATE,
                   depends_on="Spesimen_darah_diambil"),
            _field("Tanggal_pengiriman_spesimen_darah_ke_lab", "Blood specimen sent to lab", T.DATE,
                   depends_on="Spesimen_darah_diambil"),
            _field("Spesimen_lain_diambil", "Other specimen taken?", T.ENUM_CHOICE, required=True, options=YES_NO),
            _field("Jenis_spesimen_lain", "Other specimen type", T.ENUM_SINGLE, depends_on="Spesimen_lain_diambil",
                   options=("Urine", "Throat swab", "Nasal swab", "Cerebrospinal fluid", "Other")),
            _field("Tanggal_ambil_spesimen_lain", "Other specimen date", T.DATE,
                   depends_on="Spesimen_lain_diambil"),
            _field("Tanggal_pengiriman_spesimen_lain_ke_lab", "Other specimen sent to lab", T.DATE,
                   depends_on="Spesimen_lain_diambil"),
        ),
    ),
    SectionDefinition(
        id="info-kondisi-akhir",
        title="FINAL CONDITION",
        description="Final condition and classification",
        fields=(
            _field("Keadaan_saat_ini", "Current condition", T.ENUM_SINGLE, required=True,
                   options=("Recovered", "Under treatment", "Died", "Unknown")),
        ),
    ),
)


# =============================================================================
# SCHEMA ACCESS
# =============================================================================

def iter_fields(sections: List[SectionDefinition]) -> Iterator[FieldDefinition]:
    """Yield every field in wizard order."""
    for section in sections:
        yield from section.fields


def check_schema(sections) -> None:
    """
    Verify the schema contract: globally unique ids, resolvable dependencies.

    Raises:
        SchemaContractError: On the first violation found
    """
    seen = set()
    for field in iter_fields(sections):
        if field.id in seen:
            raise SchemaContractError(f"Duplicate field id '{field.id}'", field_id=field.id)
        seen.add(field.id)

    for field in iter_fields(sections):
        if field.depends_on and field.depends_on not in seen:
            raise SchemaContractError(
                f"Field '{field.id}' depends on unknown field '{field.depends_on}'",
                field_id=field.id,
            )
        if field.compute_rule and field.source_field not in seen:
            raise SchemaContractError(
                f"Computed field '{field.id}' has no valid source field",
                field_id=field.id,
            )


check_schema(_MR01_SECTIONS)


def get_form_sections(disease: str, form: str) -> List[SectionDefinition]:
    """
    Return a fresh copy of the section list for a disease/form combination.

    Every registered combination currently uses the MR-01 case record.

    Raises:
        SchemaContractError: If the disease or form code is not registered
    """
    if disease not in DISEASE_NAMES:
        raise SchemaContractError(f"Unknown disease '{disease}'", disease=disease)
    if form not in FORM_NAMES:
        raise SchemaContractError(f"Unknown form '{form}'", form=form)
    return copy.deepcopy(list(_MR01_SECTIONS))


def find_field(sections: List[SectionDefinition], field_id: str) -> Optional[FieldDefinition]:
    for field in iter_fields(sections):
        if field.id == field_id:
            return field
    return None


def expand_only(sections: List[SectionDefinition], index: int) -> List[SectionDefinition]:
    """Return sections with only the given step expanded."""
    return [replace(s, is_expanded=(i == index)) for i, s in enumerate(sections)]


# =============================================================================
# COMPUTE RULES
# =============================================================================

def parse_date(value: Any) -> Optional[date]:
    """
    Parse an ISO date or datetime value into a date.

    Returns:
        The date, or None when the value cannot be parsed
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def calculate_age(birth_date: Any, today: Optional[date] = None) -> Optional[int]:
    """Whole years between birth_date and today; None if unknown or negative."""
    birth = parse_date(birth_date)
    if birth is None:
        return None

    today = today or date.today()
    age = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        age -= 1

    return age if age >= 0 else None


_COMPUTE_RULES = {
    AGE_FROM_BIRTHDATE: calculate_age,
}


def apply_compute_rules(
    changed_field_id: str,
    values: Dict[str, Any],
    sections: List[SectionDefinition],
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Recompute every computed field fed by ``changed_field_id``.

    Returns:
        A new values dict (the input is not mutated)
    """
    updated = dict(values)
    for field in iter_fields(sections):
        if field.compute_rule is None or field.source_field != changed_field_id:
            continue

        rule = _COMPUTE_RULES.get(field.compute_rule)
        if rule is None:
            raise SchemaContractError(
                f"Unknown compute rule '{field.compute_rule}'", field_id=field.id
            )

        result = rule(updated.get(changed_field_id), today)
        if result is None:
            updated.pop(field.id, None)
        else:
            updated[field.id] = result
            logger.debug(f"Computed {field.id}={result} from {changed_field_id}")

    return updated
