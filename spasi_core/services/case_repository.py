# =============================================================================
# spasi_core/services/case_repository.py
# Case Listing, Patient Dedup and Search
# =============================================================================
"""
CaseRepository - read side of the case store for the resume and weekly
report pages.

Dedup rule for list views:
    - group records of the same disease/form by patient name
    - keep the record with the highest status (draft < submitted < completed)
    - records without a patient name cannot be grouped and are left out
    - only groups whose kept record is submitted or completed are returned

A patient who only ever saved a draft therefore never shows up in these
views. Drafts are reopened from the form page by id.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from spasi_core.logging import get_logger
from spasi_core.offline.local_store import LocalStore
from spasi_core.offline.records import CaseRecord, CaseStatus, CaseSummary
from spasi_core.offline.sync_engine import RemoteSync
from spasi_core.services.results import LISTING_FAILED, CaseQueryResult, run_case_query

logger = get_logger(__name__)

REPORTABLE_STATUSES: FrozenSet[CaseStatus] = frozenset({CaseStatus.SUBMITTED, CaseStatus.COMPLETED})


@dataclass
class CaseFilter:
    """Selection for list views. ``None`` means "any"."""
    disease: Optional[str] = None
    form: Optional[str] = None
    owner_user_id: Optional[str] = None
    statuses: FrozenSet[CaseStatus] = field(default_factory=lambda: REPORTABLE_STATUSES)
    search: Optional[str] = None

    def matches(self, record: CaseRecord) -> bool:
        if self.disease is not None and record.disease != self.disease:
            return False
        if self.form is not None and record.form != self.form:
            return False
        if self.owner_user_id is not None and record.owner_user_id != self.owner_user_id:
            return False
        return True

    def describe(self) -> Dict[str, Any]:
        """The narrowing parts of the selection, for logs and page captions."""
        selection: Dict[str, Any] = {
            name: value
            for name, value in (
                ("disease", self.disease),
                ("form", self.form),
                ("owner_user_id", self.owner_user_id),
                ("search", self.search.strip() if self.search else None),
            )
            if value
        }
        selection["statuses"] = sorted(s.value for s in self.statuses)
        return selection


def dedup_by_patient(records: List[CaseRecord]) -> List[CaseRecord]:
    """
    One record per patient name, the one with the highest status.

    Ties keep the record seen first. Group order follows the first
    appearance of each name.
    """
    by_patient: Dict[str, CaseRecord] = {}
    for record in records:
        name = record.patient_name
        if not name:
            continue
        kept = by_patient.get(name)
        if kept is None or record.status.rank > kept.status.rank:
            by_patient[name] = record
    return list(by_patient.values())


def search_by_patient(records: List[CaseRecord], term: Optional[str]) -> List[CaseRecord]:
    """Case-insensitive substring match on patient name."""
    if not term or not term.strip():
        return records
    needle = term.strip().lower()
    return [r for r in records if needle in r.patient_name.lower()]


class CaseRepository:
    """
    Usage:
        repository = CaseRepository(store, sync)
        cases = repository.list_cases(CaseFilter(disease="campak-rubela", form="mr-01"))
    """

    def __init__(self, local_store: LocalStore, sync: Optional[RemoteSync] = None):
        self.local_store = local_store
        self.sync = sync

    def _known_records(self, owner_user_id: Optional[str], include_remote: bool) -> List[CaseRecord]:
        records = self.local_store.list_cases()
        if not include_remote or self.sync is None:
            return records

        remote = self.sync.fetch_remote_records(owner_user_id)
        if not remote:
            return records

        merged: Dict[str, CaseRecord] = {r.id: r for r in records}
        for record in remote:
            local = merged.get(record.id)
            if local is not None and local.pending_sync:
                continue
            merged[record.id] = record

        logger.debug(f"Merged {len(remote)} remote record(s) into {len(records)} local")
        return list(merged.values())

    def list_records(
        self,
        case_filter: Optional[CaseFilter] = None,
        include_remote: bool = False,
    ) -> List[CaseRecord]:
        """
        Deduplicated records for list and report views.

        Args:
            case_filter: Disease/form/owner/status/search selection
            include_remote: Also consider the owner's remote rows (when online)

        Returns:
            Records in first-seen order
        """
        case_filter = case_filter or CaseFilter()
        candidates = [
            r for r in self._known_records(case_filter.owner_user_id, include_remote)
            if case_filter.matches(r)
        ]
        kept = [r for r in dedup_by_patient(candidates) if r.status in case_filter.statuses]
        return search_by_patient(kept, case_filter.search)

    def list_cases(
        self,
        case_filter: Optional[CaseFilter] = None,
        include_remote: bool = False,
    ) -> List[CaseSummary]:
        """Summaries of ``list_records`` (the resume page rows)."""
        return [r.summary() for r in self.list_records(case_filter, include_remote)]

    def list_cases_result(
        self,
        case_filter: Optional[CaseFilter] = None,
        include_remote: bool = False,
    ) -> CaseQueryResult:
        """``list_cases`` wrapped for pages that show errors instead of raising."""
        def query(selected: CaseFilter, remote: bool) -> Tuple[List[CaseSummary], int]:
            summaries = self.list_cases(selected, remote)
            return summaries, len(summaries)

        return run_case_query(
            logger, "Loading cases", LISTING_FAILED, query, case_filter or CaseFilter(), include_remote
        )

    def get_case(self, case_id: str) -> Optional[CaseRecord]:
        return self.local_store.get_case(case_id)

    def delete_case(self, case_id: str) -> bool:
        """Remove a case from this device (explicit user action)."""
        deleted = self.local_store.delete_case(case_id)
        if not deleted:
            logger.warning(f"Delete requested for unknown case {case_id}")
        return deleted
