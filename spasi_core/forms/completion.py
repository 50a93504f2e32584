# =============================================================================
# spasi_core/forms/completion.py
# Per-Section Completion Tracking
# =============================================================================
"""
SectionCompletionTracker - keeps each wizard step's ``is_complete`` flag.

Updates are incremental: only the section that owns the changed field is
recomputed, every other section object is handed back untouched.
"""

from __future__ import annotations
from dataclasses import replace
from typing import Any, List, Mapping

from spasi_core.forms.dependencies import (
    DEPENDENCY_RULES,
    DependencyRules,
    is_filled,
    required_visible_fields,
)
from spasi_core.forms.schema import SectionDefinition


def section_is_complete(
    section: SectionDefinition,
    values: Mapping[str, Any],
    rules: DependencyRules = DEPENDENCY_RULES,
) -> bool:
    """
    A section with visible required fields is complete when all are filled.
    A section with none is complete as soon as any of its fields has a value.
    """
    required = required_visible_fields(section, values, rules)
    if required:
        return all(is_filled(values.get(f.id)) for f in required)
    return any(is_filled(values.get(f.id)) for f in section.fields)


def recompute(
    changed_field_id: str,
    values: Mapping[str, Any],
    sections: List[SectionDefinition],
    rules: DependencyRules = DEPENDENCY_RULES,
) -> List[SectionDefinition]:
    """Return sections with the changed field's section re-evaluated."""
    updated = []
    for section in sections:
        if changed_field_id in section.field_ids:
            section = replace(section, is_complete=section_is_complete(section, values, rules))
        updated.append(section)
    return updated


def mark_complete(sections: List[SectionDefinition], index: int) -> List[SectionDefinition]:
    """Flag one step complete after the wizard validated and left it."""
    return [
        replace(section, is_complete=True) if i == index else section
        for i, section in enumerate(sections)
    ]
