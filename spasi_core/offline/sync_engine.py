# =============================================================================
# spasi_core/offline/sync_engine.py
# Local-First Save/Submit and Remote Reconciliation
# =============================================================================
"""
RemoteSync - persists every save on this device first, then tries the
remote store.

Protocol for save_draft / submit:
    1. Reuse the case id or mint a client id (draft_... / submit_...)
    2. Write the full record to LocalStore (always)
    3. No remote store, or offline -> LOCAL_ONLY
    4. Remote create (client id) or update (server id)
    5. Success -> adopt the server id locally, clear pending_sync -> SYNCED
    6. Remote failure -> local record untouched -> SYNC_FAILED

Remote failures never raise; local storage failures always do.
"""

from __future__ import annotations
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from spasi_core.errors import RemoteSyncError
from spasi_core.forms import DISEASE_NAMES, FORM_NAMES, get_form_sections, iter_fields
from spasi_core.forms.schema import SectionDefinition
from spasi_core.forms.validation import sections_with_errors, validate
from spasi_core.logging import case_logger, get_logger, LogContext
from spasi_core.offline.connection_manager import ConnectionManager, ConnectionState, ConnectionStatus
from spasi_core.offline.field_mapping import from_remote_row, to_remote_row
from spasi_core.offline.local_store import LocalStore
from spasi_core.offline.records import (
    CaseRecord,
    CaseStatus,
    generate_case_id,
    is_local_id,
    normalize_timestamp,
)
from spasi_core.offline.remote_store import RemoteCaseStore

logger = get_logger(__name__)

LOCAL_USER = "local_user"
LAST_SYNC_SETTING = "last_successful_sync"
MAX_REASSIGNED_IDS = 1000


class SyncOutcome(Enum):
    """What happened to a save or submit."""
    SYNCED = "synced"                       # Stored locally and remotely
    LOCAL_ONLY = "local_only"               # Stored locally; remote not attempted
    SYNC_FAILED = "sync_failed"             # Stored locally; remote attempt failed
    VALIDATION_FAILED = "validation_failed" # Nothing written


@dataclass
class SyncResult:
    """Outcome of one save/submit/retry."""
    case_id: Optional[str]
    outcome: SyncOutcome
    errors: Dict[str, str] = field(default_factory=dict)
    failing_sections: List[str] = field(default_factory=list)
    failing_titles: List[str] = field(default_factory=list)
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        """True when the record is safely stored (remotely or on this device)."""
        return self.outcome in (SyncOutcome.SYNCED, SyncOutcome.LOCAL_ONLY)

    @property
    def recoverable(self) -> bool:
        """True when the record is stored locally and will be sent later."""
        return self.outcome == SyncOutcome.SYNC_FAILED

    def __bool__(self) -> bool:
        return self.ok


class RemoteSync:
    """
    Save/submit coordinator between LocalStore and a RemoteCaseStore.

    Usage:
        sync = RemoteSync(store, SupabaseCaseStore.from_settings(settings), connection,
                          current_user=get_current_user)
        result = sync.save_draft(values, "campak-rubela", "mr-01")
        notify_sync_result(result)
    """

    def __init__(
        self,
        local_store: LocalStore,
        remote_store: Optional[RemoteCaseStore] = None,
        connection: Optional[ConnectionManager] = None,
        current_user: Optional[Callable[[], Optional[Mapping[str, Any]]]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            local_store: Open LocalStore
            remote_store: Remote case store, or None for a local-only device
            connection: Connectivity monitor; None means "assume reachable"
            current_user: Callable returning the signed-in user dict (or None)
            clock: Callable returning "now" (tests pin it)
        """
        self.local_store = local_store
        self.remote_store = remote_store
        self.connection = connection
        self.current_user = current_user
        self.clock = clock or datetime.now
        self._lock = threading.Lock()
        self._reassigned: OrderedDict[str, str] = OrderedDict()

        if connection is not None:
            connection.register_callback(self._on_connection_change)

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def remote_configured(self) -> bool:
        return self.remote_store is not None

    @property
    def remote_available(self) -> bool:
        if self.remote_store is None:
            return False
        return self.connection is None or self.connection.is_online

    @property
    def is_busy(self) -> bool:
        return self._lock.locked()

    def owner_user_id(self) -> str:
        user = self.current_user() if self.current_user else None
        if user and user.get("id"):
            return str(user["id"])
        return LOCAL_USER

    def resolve_id(self, case_id: Optional[str]) -> Optional[str]:
        """The id a case is stored under now; client ids map to their server id once synced."""
        while case_id in self._reassigned:
            case_id = self._reassigned[case_id]
        return case_id

    def _remember_reassignment(self, old_id: str, new_id: str) -> None:
        """Keep the most recent client->server id moves; the oldest are forgotten first."""
        self._reassigned[old_id] = new_id
        while len(self._reassigned) > MAX_REASSIGNED_IDS:
            forgotten, _ = self._reassigned.popitem(last=False)
            logger.debug(f"Forgetting id reassignment for {forgotten}")

    def _now(self) -> str:
        return self.clock().replace(microsecond=0).isoformat()

    def _on_connection_change(self, state: ConnectionState) -> None:
        if state.status == ConnectionStatus.ONLINE:
            logger.info("Connection restored, sending pending cases")
            self.retry_pending()

    # =========================================================================
    # SAVE / SUBMIT
    # =========================================================================

    def save_draft(
        self,
        values: Mapping[str, Any],
        disease: str,
        form: str,
        existing_id: Optional[str] = None,
    ) -> SyncResult:
        """Store a draft locally, then try the remote store."""
        with self._lock:
            existing_id = self.resolve_id(existing_id)
            record = self._store_locally(values, disease, form, CaseStatus.DRAFT, existing_id)
            return self._push(record)

    def submit(
        self,
        values: Mapping[str, Any],
        disease: str,
        form: str,
        existing_id: Optional[str] = None,
        sections: Optional[List[SectionDefinition]] = None,
        today: Optional[date] = None,
    ) -> SyncResult:
        """
        Validate the whole form, then store and send it as submitted.

        Returns:
            VALIDATION_FAILED with the error map (nothing written), or the
            outcome of the save
        """
        sections = sections if sections is not None else get_form_sections(disease, form)
        errors = validate(values, sections, today or self.clock().date())

        if errors:
            failing = sections_with_errors(errors, sections)
            logger.info(f"Submit blocked: {len(errors)} field error(s) in {len(failing)} section(s)")
            return SyncResult(
                case_id=existing_id,
                outcome=SyncOutcome.VALIDATION_FAILED,
                errors=errors,
                failing_sections=[s.id for s in failing],
                failing_titles=[s.title for s in failing],
                message=f"{len(errors)} field(s) need attention",
            )

        with self._lock:
            existing_id = self.resolve_id(existing_id)
            record = self._store_locally(values, disease, form, CaseStatus.SUBMITTED, existing_id)
            return self._push(record)

    def _store_locally(
        self,
        values: Mapping[str, Any],
        disease: str,
        form: str,
        status: CaseStatus,
        existing_id: Optional[str],
    ) -> CaseRecord:
        now = self._now()
        prefix = "submit" if status == CaseStatus.SUBMITTED else "draft"
        case_id = existing_id or generate_case_id(prefix)
        previous = self.local_store.get_case(case_id) if existing_id else None

        # Status never moves backwards; the first submit fixes submitted_at
        if previous is not None and previous.status.rank > status.rank:
            case_logger(logger, case_id).debug(f"Stays {previous.status.value} (save requested {status.value})")
            status = previous.status
        if previous is not None and previous.submitted_at:
            submitted_at = previous.submitted_at
        elif status == CaseStatus.SUBMITTED:
            submitted_at = now
        else:
            submitted_at = None

        record = CaseRecord(
            id=case_id,
            disease=disease,
            form=form,
            status=status,
            owner_user_id=previous.owner_user_id if previous else self.owner_user_id(),
            values=dict(values),
            created_at=previous.created_at if previous else now,
            last_modified_at=now,
            submitted_at=submitted_at,
            pending_sync=self.remote_configured,
        )
        self.local_store.put_case(record)
        return record

    def _push(self, record: CaseRecord) -> SyncResult:
        """Send one stored record to the remote store. Caller holds the lock."""
        log = case_logger(logger, record.id)
        if not self.remote_available:
            log.info("Saved on this device (remote unavailable)")
            return SyncResult(
                case_id=record.id,
                outcome=SyncOutcome.LOCAL_ONLY,
                message="Saved on this device.",
            )

        row = to_remote_row(
            record.values,
            base={
                "disease": record.disease,
                "form": record.form,
                "status": record.status.value,
                "user_id": record.owner_user_id,
                "submitted_at": record.submitted_at,
            },
        )

        try:
            if is_local_id(record.id):
                saved = self.remote_store.create(row)
            else:
                saved = self.remote_store.update(record.id, row)
            if not saved or saved.get("id") is None:
                raise RemoteSyncError("Remote store returned no id", case_id=record.id)
        except Exception as e:
            # The local copy stays pending and goes out on the next save or reconnect
            log.warning(f"Remote sync failed, kept pending: {e}")
            return SyncResult(
                case_id=record.id,
                outcome=SyncOutcome.SYNC_FAILED,
                message="Saved on this device; it will be sent when the connection returns.",
            )

        server_id = str(saved["id"])
        if server_id != record.id:
            self._remember_reassignment(record.id, server_id)
            record = self.local_store.reassign_id(record.id, server_id)
        record.pending_sync = False
        self.local_store.put_case(record)
        self.local_store.set_setting(LAST_SYNC_SETTING, self._now())

        case_logger(logger, record.id).info(f"Synchronized ({record.status.value})")
        return SyncResult(case_id=record.id, outcome=SyncOutcome.SYNCED, message="Saved and synchronized.")

    # =========================================================================
    # RECONCILIATION
    # =========================================================================

    def retry_pending(self) -> List[SyncResult]:
        """Push every record still marked pending_sync. No-op while offline."""
        if not self.remote_available:
            logger.debug("Skipping retry: remote unavailable")
            return []

        with self._lock:
            pending = self.local_store.pending_cases()
            if not pending:
                return []

            with LogContext(logger, f"Sending {len(pending)} pending case(s)") as step:
                results = [self._push(record) for record in pending]
                synced = sum(1 for r in results if r.outcome == SyncOutcome.SYNCED)
                step.summary = f"{synced} synced, {len(results) - synced} failed"

        return results

    def fetch_remote_records(self, owner_user_id: Optional[str] = None) -> List[CaseRecord]:
        """
        The owner's remote cases as records, without touching LocalStore.

        Returns:
            Records, or an empty list when offline or the listing fails
        """
        if not self.remote_available:
            return []

        owner = owner_user_id or self.owner_user_id()
        try:
            rows = self.remote_store.list_by_owner(owner)
        except Exception as e:
            logger.warning(f"Could not list remote cases for {owner}: {e}")
            return []

        return [self._record_from_row(row, owner) for row in rows if row.get("id") is not None]

    def pull_remote(self, owner_user_id: Optional[str] = None) -> int:
        """
        Copy the owner's remote cases into LocalStore.

        Records with unsent local changes are left alone.

        Returns:
            Number of records written locally
        """
        records = self.fetch_remote_records(owner_user_id)

        written = 0
        with self._lock:
            for record in records:
                local = self.local_store.get_case(record.id)
                if local is not None and local.pending_sync:
                    logger.debug(f"Keeping local changes for case {record.id}")
                    continue
                self.local_store.put_case(record)
                written += 1

        logger.info(f"Pulled {written} remote case(s)")
        return written

    def load_values(self, case_id: str) -> Dict[str, Any]:
        """
        Values for re-opening a case: the local copy first, else the remote row.

        Returns:
            Form values, or an empty dict when the case cannot be found
        """
        case_id = self.resolve_id(case_id)
        record = self.local_store.get_case(case_id)
        if record is not None:
            return dict(record.values)

        if not self.remote_available:
            logger.warning(f"Case {case_id} not on this device and remote unavailable")
            return {}

        try:
            row = self.remote_store.get(case_id)
        except Exception as e:
            logger.warning(f"Could not load remote case {case_id}: {e}")
            return {}

        if row is None:
            return {}
        return self._record_from_row(row, self.owner_user_id()).values

    def _record_from_row(self, row: Mapping[str, Any], owner: str) -> CaseRecord:
        disease = row.get("disease") or ""
        form = row.get("form") or ""
        try:
            status = CaseStatus(row.get("status") or CaseStatus.DRAFT.value)
        except ValueError:
            logger.warning(f"Unknown remote status {row.get('status')!r} for case {row.get('id')}")
            status = CaseStatus.DRAFT

        created_at = normalize_timestamp(row.get("created_at")) or self._now()
        modified_at = normalize_timestamp(row.get("last_modified") or row.get("updated_at")) or created_at

        return CaseRecord(
            id=str(row["id"]),
            disease=disease,
            form=form,
            status=status,
            owner_user_id=row.get("user_id") or owner,
            values=from_remote_row(row, _schema_field_ids(disease, form)),
            created_at=created_at,
            last_modified_at=modified_at,
            submitted_at=normalize_timestamp(row.get("submitted_at")),
            pending_sync=False,
        )


def _schema_field_ids(disease: str, form: str) -> List[str]:
    if disease in DISEASE_NAMES and form in FORM_NAMES:
        return [f.id for f in iter_fields(get_form_sections(disease, form))]
    return []
