# =============================================================================
# spasi_core/services/form_session.py
# Headless Controller for the Case-Report Wizard
# =============================================================================
"""
FormSession holds the state of one open case form: values, field errors,
section completion and the current wizard step. The Streamlit page keeps a
FormSession in ``st.session_state`` and only renders what it exposes.

At most one save or submit runs per session. A save requested while another
is in flight is dropped (returns None) rather than queued, which is what
keeps the autosave timer from piling up behind a slow remote call.
"""

from __future__ import annotations
import threading
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from spasi_core.errors import SchemaContractError
from spasi_core.forms import (
    apply_compute_rules,
    find_field,
    get_form_sections,
    iter_fields,
    is_filled,
    mark_complete,
    recompute,
    section_is_complete,
    validate_section,
)
from spasi_core.forms.schema import SectionDefinition, expand_only
from spasi_core.logging import get_logger
from spasi_core.offline.sync_engine import RemoteSync, SyncOutcome, SyncResult

logger = get_logger(__name__)


class FormSession:
    """
    Usage:
        session = FormSession("campak-rubela", "mr-01", sync)
        session.set_value("Nama_kasus", "Budi")
        if session.next_step():
            ...
        result = session.submit()
    """

    def __init__(
        self,
        disease: str,
        form: str,
        sync: RemoteSync,
        case_id: Optional[str] = None,
    ):
        self.disease = disease
        self.form = form
        self.sync = sync
        self.case_id = case_id
        self.sections: List[SectionDefinition] = expand_only(get_form_sections(disease, form), 0)
        self.values: Dict[str, Any] = {}
        self.errors: Dict[str, str] = {}
        self.current_step = 0
        self.last_saved: Optional[datetime] = None
        self.last_result: Optional[SyncResult] = None
        self.submitted = False
        self._busy = threading.Lock()

        if case_id:
            self.load(case_id)

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def current_section(self) -> SectionDefinition:
        return self.sections[self.current_step]

    @property
    def is_busy(self) -> bool:
        """True while a save or submit is in flight."""
        return self._busy.locked()

    @property
    def filled_field_count(self) -> int:
        return sum(1 for value in self.values.values() if is_filled(value))

    @property
    def is_last_step(self) -> bool:
        return self.current_step == len(self.sections) - 1

    def _today(self):
        return self.sync.clock().date()

    def _set_step(self, step: int) -> None:
        self.current_step = step
        self.sections = expand_only(self.sections, step)

    # =========================================================================
    # EDITING
    # =========================================================================

    def set_value(self, field_id: str, value: Any) -> None:
        """
        Record one answer and refresh everything derived from it.

        Raises:
            SchemaContractError: If the field is not part of this form
        """
        if find_field(self.sections, field_id) is None:
            raise SchemaContractError(
                f"Field '{field_id}' is not part of {self.form}",
                field_id=field_id,
                disease=self.disease,
                form=self.form,
            )

        values = dict(self.values)
        values[field_id] = value
        self.values = apply_compute_rules(field_id, values, self.sections, self._today())
        self.errors.pop(field_id, None)

        changed = [field_id] + [
            f.id for f in iter_fields(self.sections) if f.source_field == field_id
        ]
        for changed_id in changed:
            self.sections = recompute(changed_id, self.values, self.sections)

    def validate_current_section(self) -> bool:
        """Check the visible fields of the current step; keep the errors for display."""
        self.errors = validate_section(self.values, self.current_section, self._today())
        return not self.errors

    def next_step(self) -> bool:
        """Advance if the current step validates, marking it complete."""
        if not self.validate_current_section():
            logger.debug(f"Step {self.current_step} has {len(self.errors)} error(s)")
            return False

        self.sections = mark_complete(self.sections, self.current_step)
        self._set_step(min(self.current_step + 1, len(self.sections) - 1))
        return True

    def previous_step(self) -> None:
        self._set_step(max(self.current_step - 1, 0))

    def go_to_step(self, step: int) -> bool:
        """Jump back, or forward onto a step that is already complete."""
        if not 0 <= step < len(self.sections):
            return False
        if step <= self.current_step or self.sections[step].is_complete:
            self._set_step(step)
            return True
        return False

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def _adopt(self, result: SyncResult) -> SyncResult:
        self.last_result = result
        if result.outcome != SyncOutcome.VALIDATION_FAILED:
            if result.case_id:
                self.case_id = result.case_id
            self.last_saved = self.sync.clock()
        return result

    def save_draft(self) -> Optional[SyncResult]:
        """Save the current values as a draft; None if a save is already running."""
        if not self._busy.acquire(blocking=False):
            logger.debug("Save skipped: another save is in flight")
            return None
        try:
            result = self.sync.save_draft(self.values, self.disease, self.form, self.case_id)
        finally:
            self._busy.release()
        return self._adopt(result)

    def submit(self) -> Optional[SyncResult]:
        """
        Validate everything and submit.

        On validation errors the field errors are kept and the wizard jumps
        to the first section that has one.
        """
        if not self._busy.acquire(blocking=False):
            logger.debug("Submit skipped: another save is in flight")
            return None
        try:
            result = self.sync.submit(
                self.values,
                self.disease,
                self.form,
                self.case_id,
                sections=self.sections,
                today=self._today(),
            )
        finally:
            self._busy.release()

        if result.outcome == SyncOutcome.VALIDATION_FAILED:
            self.errors = dict(result.errors)
            section_ids = [s.id for s in self.sections]
            self._set_step(section_ids.index(result.failing_sections[0]))
        else:
            self.submitted = True

        return self._adopt(result)

    def autosave_tick(self) -> Optional[SyncResult]:
        """Timer callback: save a draft while the form has answers and is not yet submitted."""
        if self.filled_field_count == 0 or self.submitted:
            return None
        if self.is_busy:
            logger.debug("Autosave tick dropped: save in flight")
            return None
        return self.save_draft()

    def load(self, case_id: str) -> bool:
        """Re-open an existing case. Returns False when nothing was found."""
        values = self.sync.load_values(case_id)
        self.case_id = case_id
        self.values = dict(values)
        self.errors = {}
        self.sections = [
            replace(section, is_complete=section_is_complete(section, self.values))
            for section in self.sections
        ]
        if not values:
            logger.warning(f"Case {case_id} could not be loaded")
        return bool(values)
