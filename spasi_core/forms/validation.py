# =============================================================================
# spasi_core/forms/validation.py
# Field-Level Form Validation
# =============================================================================
"""
Validator - turns form values into a {field_id: message} error map.

Only fields that are currently visible are checked, so answers hidden by a
dependency never block submission. The same rules serve full-form
submission (``validate``) and the wizard's per-step check
(``validate_section``).
"""

from __future__ import annotations
import math
import re
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from spasi_core.forms.dependencies import (
    DEPENDENCY_RULES,
    DependencyRules,
    is_filled,
    is_visible,
)
from spasi_core.forms.schema import (
    FieldDefinition,
    FieldKind,
    SectionDefinition,
    parse_date,
)

PHONE_PATTERN = re.compile(r"^[\d\s\-+()]+$")

GESTATIONAL_AGE_FIELD = "Umur_kehamilan"
GESTATIONAL_AGE_RANGE = (0, 42)

MSG_INVALID_PHONE = "Invalid phone number."
MSG_NOT_A_NUMBER = "Must be a number."
MSG_INVALID_DATE = "Invalid date format."
MSG_FUTURE_DATE = "Date cannot be in the future."
MSG_GESTATIONAL_AGE = "Gestational age must be between 0 and 42 weeks."


def required_message(field: FieldDefinition) -> str:
    return f"{field.label} is required."


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _format_error(field: FieldDefinition, value: Any, today: date) -> Optional[str]:
    """Format/range error for a filled value, or None."""
    error = None

    if field.kind == FieldKind.PHONE and not PHONE_PATTERN.match(str(value)):
        error = MSG_INVALID_PHONE

    if field.kind == FieldKind.INTEGER and _as_number(value) is None:
        error = MSG_NOT_A_NUMBER

    if field.kind == FieldKind.DATE:
        parsed = parse_date(value)
        if parsed is None:
            error = MSG_INVALID_DATE
        elif parsed > today:
            error = MSG_FUTURE_DATE

    if field.id == GESTATIONAL_AGE_FIELD:
        weeks = _as_number(value)
        low, high = GESTATIONAL_AGE_RANGE
        if weeks is not None and not low <= weeks <= high:
            error = MSG_GESTATIONAL_AGE

    return error


def validate_field(
    field: FieldDefinition,
    values: Mapping[str, Any],
    today: Optional[date] = None,
    rules: DependencyRules = DEPENDENCY_RULES,
) -> Optional[str]:
    """Error message for one field, or None if it passes (or is hidden)."""
    if not is_visible(field, values, rules):
        return None

    value = values.get(field.id)
    if not is_filled(value):
        return required_message(field) if field.required else None

    return _format_error(field, value, today or date.today())


def validate_section(
    values: Mapping[str, Any],
    section: SectionDefinition,
    today: Optional[date] = None,
    rules: DependencyRules = DEPENDENCY_RULES,
) -> Dict[str, str]:
    """Validate one wizard step."""
    today = today or date.today()
    errors: Dict[str, str] = {}
    for field in section.fields:
        message = validate_field(field, values, today, rules)
        if message:
            errors[field.id] = message
    return errors


def validate(
    values: Mapping[str, Any],
    sections: List[SectionDefinition],
    today: Optional[date] = None,
    rules: DependencyRules = DEPENDENCY_RULES,
) -> Dict[str, str]:
    """
    Validate the whole form.

    Args:
        values: Current form values keyed by field id
        sections: Form schema sections
        today: Reference date for the future-date rule (default: today)
        rules: Visibility table

    Returns:
        Mapping of field id to message; empty when the form is valid
    """
    today = today or date.today()
    errors: Dict[str, str] = {}
    for section in sections:
        errors.update(validate_section(values, section, today, rules))
    return errors


def sections_with_errors(
    errors: Mapping[str, str],
    sections: List[SectionDefinition],
) -> List[SectionDefinition]:
    """Sections holding at least one failing field, in wizard order."""
    return [s for s in sections if any(fid in errors for fid in s.field_ids)]
