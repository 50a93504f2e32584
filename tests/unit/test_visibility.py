# =============================================================================
# tests/unit/test_visibility.py
# Unit Tests for Conditional Field Visibility
# =============================================================================

import pytest


class TestIsVisible:
    """Test the visibility predicate lookup"""

    def test_unconditional_field_always_visible(self, sections):
        from spasi_core.forms import find_field, is_visible

        assert is_visible(find_field(sections, "Nama_kasus"), {})

    def test_unset_controller_hides_dependent(self, sections):
        from spasi_core.forms import find_field, is_visible

        field = find_field(sections, "Tanggal_mulai_demam")
        assert not is_visible(field, {})
        assert not is_visible(field, {"Demam": "   "})

    @pytest.mark.parametrize("answer,visible", [("Yes", True), ("No", False)])
    def test_exact_pair_rule(self, sections, answer, visible):
        from spasi_core.forms import find_field, is_visible

        field = find_field(sections, "Umur_kehamilan")
        assert is_visible(field, {"Kehamilan": answer}) is visible

    @pytest.mark.parametrize("answer,visible", [("Yes", True), ("No", True), ("Unknown", False)])
    def test_vaccination_source_follows_any_definite_answer(self, sections, answer, visible):
        from spasi_core.forms import find_field, is_visible

        field = find_field(sections, "Sumber_info_MR_18_bulan")
        assert is_visible(field, {"Imunisasi_campak_MR_18_bulan": answer}) is visible

    def test_controller_wide_rule_covers_every_dependent(self, sections):
        from spasi_core.forms import find_field, is_visible

        values = {"Apakah_kasus_dirawat_di_RS": "Yes"}
        for field_id in ("Nama_Rumah_Sakit", "Tanggal_masuk_rawat_inap", "Nomor_rekam_medik", "Tanggal_keluar"):
            assert is_visible(find_field(sections, field_id), values)

    @pytest.mark.parametrize("controller", [
        "Demam", "Ruam_makulopopular", "Adenopathy", "Arthralgia",
        "Kehamilan", "Lainnya", "Ada_anggota_sakit_sama",
    ])
    def test_symptom_controllers_only_reveal_their_named_detail(self, controller):
        from spasi_core.forms import FieldDefinition, FieldKind, is_visible

        extra = FieldDefinition(id="Catatan_tambahan", label="Extra note", kind=FieldKind.TEXT,
                                depends_on=controller)

        assert not is_visible(extra, {controller: "Yes"})

    def test_named_detail_still_follows_yes(self, sections):
        from spasi_core.forms import find_field, is_visible

        assert is_visible(find_field(sections, "Tanggal_mulai_rash"), {"Ruam_makulopopular": "Yes"})
        assert is_visible(find_field(sections, "Jumlah"), {"Ada_anggota_sakit_sama": "Yes"})

    def test_unlisted_dependency_defaults_to_yes(self):
        from spasi_core.forms import FieldDefinition, FieldKind, is_visible

        field = FieldDefinition(id="Detail", label="Detail", kind=FieldKind.TEXT, depends_on="NewQuestion")

        assert is_visible(field, {"NewQuestion": "Yes"})
        assert not is_visible(field, {"NewQuestion": "No"})

    def test_with_rule_extends_table_without_mutating_it(self):
        from spasi_core.forms import DEPENDENCY_RULES, FieldDefinition, FieldKind, is_visible

        field = FieldDefinition(id="Detail", label="Detail", kind=FieldKind.TEXT, depends_on="NewQuestion")
        rules = DEPENDENCY_RULES.with_rule("NewQuestion", "Detail", "answered-yes-or-no")

        assert is_visible(field, {"NewQuestion": "No"}, rules)
        assert not is_visible(field, {"NewQuestion": "No"})

    def test_with_rule_rejects_unknown_predicate(self):
        from spasi_core.forms import DEPENDENCY_RULES

        with pytest.raises(KeyError):
            DEPENDENCY_RULES.with_rule("A", "B", "answered-maybe")


class TestVisibleSets:
    """Test visible/required-visible collections"""

    def test_hidden_required_field_never_in_required_visible_set(self):
        from spasi_core.forms import FieldDefinition, FieldKind, SectionDefinition
        from spasi_core.forms.dependencies import required_visible_fields

        section = SectionDefinition(
            id="s",
            title="S",
            fields=(
                FieldDefinition(id="Ctl", label="Ctl", kind=FieldKind.ENUM_CHOICE, required=True),
                FieldDefinition(id="Dep", label="Dep", kind=FieldKind.TEXT, required=True, depends_on="Ctl"),
            ),
        )

        for controlling in (None, "", "No", "Unknown"):
            ids = [f.id for f in required_visible_fields(section, {"Ctl": controlling})]
            assert "Dep" not in ids
        assert [f.id for f in required_visible_fields(section, {"Ctl": "Yes"})] == ["Ctl", "Dep"]

    def test_visible_field_ids_across_sections(self, sections):
        from spasi_core.forms import visible_field_ids

        ids = visible_field_ids(sections, {"Berpergian_1_bulan_terakhir": "Yes"})

        assert {"Lokasi_perjalanan", "Tanggal_pergi", "Tanggal_kembali"} <= ids
        assert "Jumlah" not in ids


class TestIsFilled:

    @pytest.mark.parametrize("value,filled", [
        (None, False), ("", False), ("  \t", False), ("x", True), (0, True), (False, True),
    ])
    def test_is_filled(self, value, filled):
        from spasi_core.forms import is_filled

        assert is_filled(value) is filled
