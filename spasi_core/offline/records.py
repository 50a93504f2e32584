# =============================================================================
# spasi_core/offline/records.py
# Case Record Model
# =============================================================================
"""
CaseRecord is the persisted unit: one filled (or partially filled) case
report plus its lifecycle metadata. CaseSummary is the lightweight row kept
in the local case index for fast listing.
"""

from __future__ import annotations
import time
import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from spasi_core.offline.field_mapping import resolve_patient_name

LOCAL_ID_PREFIXES = ("draft_", "submit_")


class CaseStatus(str, Enum):
    """Lifecycle status. Order matters for dedup: draft < submitted < completed."""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    COMPLETED = "completed"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {
    CaseStatus.DRAFT: 0,
    CaseStatus.SUBMITTED: 1,
    CaseStatus.COMPLETED: 2,
}


def now_iso() -> str:
    """Naive local timestamp, second precision."""
    return datetime.now().replace(microsecond=0).isoformat()


def normalize_timestamp(value: Any) -> Optional[str]:
    """
    Convert a remote (usually UTC, offset-aware) timestamp to the naive local
    form used for every stored record. Unparsable values pass through.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return str(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed.replace(microsecond=0).isoformat()


def generate_case_id(prefix: str = "draft") -> str:
    """
    Client-side case id, e.g. ``draft_1718000000000_3f9c1a2b7d4e5f60``.

    Millisecond clock plus 64 random bits, so ids minted in the same
    millisecond still differ.
    """
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:16]}"


def is_local_id(case_id: Optional[str]) -> bool:
    """True for ids minted on this device that the remote store never confirmed."""
    return bool(case_id) and str(case_id).startswith(LOCAL_ID_PREFIXES)


@dataclass
class CaseRecord:
    """A case report and its lifecycle metadata."""
    id: str
    disease: str
    form: str
    status: CaseStatus = CaseStatus.DRAFT
    owner_user_id: str = "local_user"
    values: Dict[str, Any] = field(default_factory=dict)
    created_at: str = field(default_factory=now_iso)
    last_modified_at: str = field(default_factory=now_iso)
    submitted_at: Optional[str] = None
    pending_sync: bool = False

    @property
    def patient_name(self) -> str:
        return resolve_patient_name(self.values)

    @property
    def effective_timestamp(self) -> str:
        """Timestamp used to place the case in a reporting week."""
        return self.submitted_at or self.last_modified_at or self.created_at

    def summary(self) -> CaseSummary:
        return CaseSummary(
            id=self.id,
            disease=self.disease,
            form=self.form,
            status=self.status,
            owner_user_id=self.owner_user_id,
            patient_name=self.patient_name,
            created_at=self.created_at,
            last_modified_at=self.last_modified_at,
            submitted_at=self.submitted_at,
            pending_sync=self.pending_sync,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CaseRecord:
        return cls(
            id=str(data["id"]),
            disease=data["disease"],
            form=data["form"],
            status=CaseStatus(data.get("status") or CaseStatus.DRAFT.value),
            owner_user_id=data.get("owner_user_id") or "local_user",
            values=dict(data.get("values") or {}),
            created_at=data.get("created_at") or now_iso(),
            last_modified_at=data.get("last_modified_at") or now_iso(),
            submitted_at=data.get("submitted_at"),
            pending_sync=bool(data.get("pending_sync", False)),
        )


@dataclass
class CaseSummary:
    """Case index row."""
    id: str
    disease: str
    form: str
    status: CaseStatus
    owner_user_id: str
    patient_name: str
    created_at: str
    last_modified_at: str
    submitted_at: Optional[str] = None
    pending_sync: bool = False

    @property
    def synced(self) -> bool:
        return not self.pending_sync

    @property
    def effective_timestamp(self) -> str:
        return self.submitted_at or self.last_modified_at or self.created_at
