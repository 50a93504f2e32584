# =============================================================================
# spasi_core/forms/__init__.py
# Case-Report Form Model: Schema, Visibility, Validation, Completion
# =============================================================================
"""
Form layer for the SPASI case-report wizard.

Usage:
------
from spasi_core.forms import get_form_sections, validate, is_visible

sections = get_form_sections("campak-rubela", "mr-01")
errors = validate(values, sections)
if not errors:
    ...
"""

from spasi_core.forms.schema import (
    FieldKind,
    FieldDefinition,
    SectionDefinition,
    DISEASE_NAMES,
    FORM_NAMES,
    YES,
    NO,
    UNKNOWN,
    get_form_sections,
    check_schema,
    find_field,
    iter_fields,
    apply_compute_rules,
    calculate_age,
)

from spasi_core.forms.dependencies import (
    DependencyRules,
    DEPENDENCY_RULES,
    ANY_DEPENDENT,
    is_filled,
    is_visible,
    visible_fields,
    visible_field_ids,
)

from spasi_core.forms.validation import (
    validate,
    validate_section,
    sections_with_errors,
)

from spasi_core.forms.completion import (
    recompute,
    mark_complete,
    section_is_complete,
)

__all__ = [
    # Schema
    "FieldKind",
    "FieldDefinition",
    "SectionDefinition",
    "DISEASE_NAMES",
    "FORM_NAMES",
    "YES",
    "NO",
    "UNKNOWN",
    "get_form_sections",
    "check_schema",
    "find_field",
    "iter_fields",
    "apply_compute_rules",
    "calculate_age",
    # Visibility
    "DependencyRules",
    "DEPENDENCY_RULES",
    "ANY_DEPENDENT",
    "is_filled",
    "is_visible",
    "visible_fields",
    "visible_field_ids",
    # Validation
    "validate",
    "validate_section",
    "sections_with_errors",
    # Completion
    "recompute",
    "mark_complete",
    "section_is_complete",
]
