# =============================================================================
# spasi_core/forms/dependencies.py
# Conditional Field Visibility
# =============================================================================
"""
VisibilityResolver - decides which fields apply given the current answers.

The (controlling field, dependent field) -> predicate table below is the
single source of truth for conditional fields. Validation and section
completion both call ``is_visible`` so the three never disagree.

Lookup order for a field with ``depends_on = C``:
    1. exact entry (C, field.id)
    2. controlling-wide entry (C, ANY_DEPENDENT)
    3. DEFAULT_PREDICATE ("answered Yes")
An unset controlling value hides every dependent.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Set, Tuple

from spasi_core.forms.schema import (
    YES,
    NO,
    FieldDefinition,
    SectionDefinition,
    iter_fields,
)

Predicate = Callable[[Any], bool]

ANY_DEPENDENT = "*"

PREDICATES: Dict[str, Predicate] = {
    "answered-yes": lambda value: value == YES,
    "answered-yes-or-no": lambda value: value in (YES, NO),
    "never": lambda value: False,
}

DEFAULT_PREDICATE = "answered-yes"


@dataclass(frozen=True)
class DependencyRules:
    """Declarative visibility table."""
    rules: Mapping[Tuple[str, str], str] = field(default_factory=dict)
    default: str = DEFAULT_PREDICATE

    def predicate_for(self, controlling_id: str, dependent_id: str) -> Predicate:
        name = self.rules.get((controlling_id, dependent_id))
        if name is None:
            name = self.rules.get((controlling_id, ANY_DEPENDENT), self.default)
        return PREDICATES[name]

    def with_rule(self, controlling_id: str, dependent_id: str, predicate: str) -> DependencyRules:
        """Return a copy with one more entry (new schema fields)."""
        if predicate not in PREDICATES:
            raise KeyError(f"Unknown visibility predicate '{predicate}'")
        rules = dict(self.rules)
        rules[(controlling_id, dependent_id)] = predicate
        return DependencyRules(rules=rules, default=self.default)


DEPENDENCY_RULES = DependencyRules(
    rules={
        ("Kasus_KLB", ANY_DEPENDENT): "answered-yes",
        # Symptom details: only the named detail field follows the answer
        ("Demam", "Tanggal_mulai_demam"): "answered-yes",
        ("Demam", ANY_DEPENDENT): "never",
        ("Ruam_makulopopular", "Tanggal_mulai_rash"): "answered-yes",
        ("Ruam_makulopopular", ANY_DEPENDENT): "never",
        ("Adenopathy", "Lokasi_Adenopathy"): "answered-yes",
        ("Adenopathy", ANY_DEPENDENT): "never",
        ("Arthralgia", "Bagian_Sendi_Arthralgia"): "answered-yes",
        ("Arthralgia", ANY_DEPENDENT): "never",
        ("Kehamilan", "Umur_kehamilan"): "answered-yes",
        ("Kehamilan", ANY_DEPENDENT): "never",
        ("Lainnya", "Sebutkan_gejala_lainnya"): "answered-yes",
        ("Lainnya", ANY_DEPENDENT): "never",
        ("Apakah_kasus_dirawat_di_RS", ANY_DEPENDENT): "answered-yes",
        # Source-of-information questions follow any definite answer
        ("Imunisasi_campak_MR_9_bulan", ANY_DEPENDENT): "answered-yes-or-no",
        ("Imunisasi_campak_MR_18_bulan", ANY_DEPENDENT): "answered-yes-or-no",
        ("Imunisasi_campak_MR_kelas_1_SD", ANY_DEPENDENT): "answered-yes-or-no",
        ("Pernah_MMR_sebelumnya", ANY_DEPENDENT): "answered-yes-or-no",
        ("Pernah_MR_kampanye", ANY_DEPENDENT): "answered-yes-or-no",
        ("Ada_anggota_sakit_sama", "Jumlah"): "answered-yes",
        ("Ada_anggota_sakit_sama", ANY_DEPENDENT): "never",
        ("Berpergian_1_bulan_terakhir", ANY_DEPENDENT): "answered-yes",
        ("Spesimen_darah_diambil", ANY_DEPENDENT): "answered-yes",
        ("Spesimen_lain_diambil", ANY_DEPENDENT): "answered-yes",
    }
)


def is_filled(value: Any) -> bool:
    """None, absent and blank strings count as unset; 0 and False are values."""
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    return True


def is_visible(
    field: FieldDefinition,
    values: Mapping[str, Any],
    rules: DependencyRules = DEPENDENCY_RULES,
) -> bool:
    """Whether ``field`` currently applies. Pure."""
    if not field.depends_on:
        return True

    controlling_value = values.get(field.depends_on)
    if not is_filled(controlling_value):
        return False

    return rules.predicate_for(field.depends_on, field.id)(controlling_value)


def visible_fields(
    section: SectionDefinition,
    values: Mapping[str, Any],
    rules: DependencyRules = DEPENDENCY_RULES,
) -> List[FieldDefinition]:
    return [f for f in section.fields if is_visible(f, values, rules)]


def visible_field_ids(
    sections: Iterable[SectionDefinition],
    values: Mapping[str, Any],
    rules: DependencyRules = DEPENDENCY_RULES,
) -> Set[str]:
    return {f.id for f in iter_fields(sections) if is_visible(f, values, rules)}


def required_visible_fields(
    section: SectionDefinition,
    values: Mapping[str, Any],
    rules: DependencyRules = DEPENDENCY_RULES,
) -> List[FieldDefinition]:
    """Fields that are both required and currently applicable."""
    return [f for f in section.fields if f.required and is_visible(f, values, rules)]
