# =============================================================================
# spasi_core/offline/local_store.py
# Local SQLite Store for Offline Case Records
# =============================================================================
"""
LocalStore - durable on-device storage for case drafts and submissions.

Features:
- One ``cases`` row per record (full JSON payload)
- ``case_index`` rows for fast listing, written in the same transaction
- Atomic id reassignment when the remote store assigns the final id
- Explicit lifecycle: open once per session, close on teardown
- Thread-safe (UI thread + autosave thread share one connection)
"""

from __future__ import annotations
import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np

from spasi_core.errors import LocalStorageError
from spasi_core.logging import get_logger
from spasi_core.offline.records import CaseRecord, CaseStatus, CaseSummary

logger = get_logger(__name__)

MEMORY = ":memory:"


def _json_default(value: Any) -> Any:
    """Serialize values that widgets and pandas hand back."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return float(value)
    if isinstance(value, np.bool_):
        return bool(value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class LocalStore:
    """
    SQLite store keyed by case id, with a secondary case index.

    Usage:
        with LocalStore(Path("local_data/spasi.db")) as store:
            store.put_case(record)
            summaries = store.list_index()
    """

    DEFAULT_DB_PATH = Path("local_data") / "spasi.db"

    SCHEMA = {
        "cases": """
            CREATE TABLE IF NOT EXISTS cases (
                id TEXT PRIMARY KEY,
                payload_json TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """,
        "case_index": """
            CREATE TABLE IF NOT EXISTS case_index (
                position INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                disease TEXT NOT NULL,
                form TEXT NOT NULL,
                status TEXT NOT NULL,
                owner_user_id TEXT,
                patient_name TEXT,
                created_at TEXT,
                last_modified_at TEXT,
                submitted_at TEXT,
                pending_sync INTEGER DEFAULT 0
            )
        """,
        "app_settings": """
            CREATE TABLE IF NOT EXISTS app_settings (
                key TEXT PRIMARY KEY,
                value TEXT,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """,
    }

    def __init__(self, db_path: Optional[Union[Path, str]] = None):
        """
        Args:
            db_path: SQLite file, or ":memory:" for a throwaway store
        """
        self.db_path = db_path or self.DEFAULT_DB_PATH
        self._connection: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    def open(self) -> LocalStore:
        """Open the database and create tables. Idempotent."""
        with self._lock:
            if self._connection is not None:
                return self

            if str(self.db_path) != MEMORY:
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

            try:
                conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
                conn.row_factory = sqlite3.Row
                for table_name, schema in self.SCHEMA.items():
                    conn.execute(schema)
                    logger.debug(f"Created/verified table: {table_name}")
                conn.commit()
            except sqlite3.Error as e:
                raise LocalStorageError(f"Cannot open local store: {e}", operation="open")

            self._connection = conn
            logger.info(f"Local store opened at: {self.db_path}")
            return self

    def close(self) -> None:
        """Flush and close the connection."""
        with self._lock:
            if self._connection is not None:
                self._connection.commit()
                self._connection.close()
                self._connection = None
                logger.debug("Local store closed")

    def __enter__(self) -> LocalStore:
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    def _conn(self) -> sqlite3.Connection:
        if self._connection is None:
            raise LocalStorageError("Local store is not open", operation="access")
        return self._connection

    @contextmanager
    def transaction(self, operation: str, case_id: Optional[str] = None):
        """Commit on success, roll back and raise LocalStorageError on failure."""
        with self._lock:
            conn = self._conn()
            try:
                yield conn
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise LocalStorageError(
                    f"Local store {operation} failed: {e}",
                    case_id=case_id,
                    operation=operation,
                )
            except Exception:
                conn.rollback()
                raise

    # =========================================================================
    # CASE OPERATIONS
    # =========================================================================

    @staticmethod
    def _serialize(record: CaseRecord) -> str:
        try:
            return json.dumps(record.to_dict(), default=_json_default)
        except (TypeError, ValueError) as e:
            raise LocalStorageError(
                f"Case cannot be serialized: {e}", case_id=record.id, operation="serialize"
            )

    @staticmethod
    def _write(conn: sqlite3.Connection, record: CaseRecord, payload: str) -> None:
        conn.execute(
            """
            INSERT INTO cases (id, payload_json, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                payload_json = excluded.payload_json,
                updated_at = excluded.updated_at
            """,
            [record.id, payload, datetime.now().isoformat()],
        )
        summary = record.summary()
        # Upsert keeps the row's position, so list order stays stable
        conn.execute(
            """
            INSERT INTO case_index (
                id, disease, form, status, owner_user_id, patient_name,
                created_at, last_modified_at, submitted_at, pending_sync
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                disease = excluded.disease,
                form = excluded.form,
                status = excluded.status,
                owner_user_id = excluded.owner_user_id,
                patient_name = excluded.patient_name,
                created_at = excluded.created_at,
                last_modified_at = excluded.last_modified_at,
                submitted_at = excluded.submitted_at,
                pending_sync = excluded.pending_sync
            """,
            [
                summary.id, summary.disease, summary.form, summary.status.value,
                summary.owner_user_id, summary.patient_name, summary.created_at,
                summary.last_modified_at, summary.submitted_at, int(summary.pending_sync),
            ],
        )

    def put_case(self, record: CaseRecord) -> None:
        """Insert or replace a case and its index row in one transaction."""
        payload = self._serialize(record)
        with self.transaction("put_case", record.id) as conn:
            self._write(conn, record, payload)
        logger.debug(f"Stored case {record.id} ({record.status.value}, pending={record.pending_sync})")

    def get_case(self, case_id: str) -> Optional[CaseRecord]:
        """Return the case, or None if this device has no copy."""
        with self._lock:
            row = self._conn().execute(
                "SELECT payload_json FROM cases WHERE id = ?", [case_id]
            ).fetchone()

        if row is None:
            return None

        try:
            return CaseRecord.from_dict(json.loads(row["payload_json"]))
        except (ValueError, KeyError) as e:
            raise LocalStorageError(
                f"Stored case is corrupt: {e}", case_id=case_id, operation="get_case"
            )

    def reassign_id(self, old_id: str, new_id: str) -> CaseRecord:
        """
        Move a case to the id assigned by the remote store.

        The old record is removed, the record is rewritten under ``new_id`` and
        the single index row is rewritten in place. Any stale row already
        holding ``new_id`` is dropped first so no duplicate remains.

        Returns:
            The record as stored under ``new_id``

        Raises:
            LocalStorageError: If ``old_id`` is unknown or the write fails
        """
        with self._lock:
            record = self.get_case(old_id)
            if record is None:
                raise LocalStorageError(
                    f"Cannot reassign unknown case {old_id}", case_id=old_id, operation="reassign_id"
                )
            if old_id == new_id:
                return record

            record.id = new_id
            payload = self._serialize(record)

            with self.transaction("reassign_id", old_id) as conn:
                conn.execute("DELETE FROM cases WHERE id IN (?, ?)", [old_id, new_id])
                conn.execute("DELETE FROM case_index WHERE id = ?", [new_id])
                conn.execute("UPDATE case_index SET id = ? WHERE id = ?", [new_id, old_id])
                self._write(conn, record, payload)

        logger.info(f"Case {old_id} reassigned to {new_id}")
        return record

    def delete_case(self, case_id: str) -> bool:
        """Remove a case and its index row. Returns True if anything was deleted."""
        with self.transaction("delete_case", case_id) as conn:
            removed = conn.execute("DELETE FROM cases WHERE id = ?", [case_id]).rowcount
            removed += conn.execute("DELETE FROM case_index WHERE id = ?", [case_id]).rowcount
        if removed:
            logger.info(f"Deleted case {case_id}")
        return removed > 0

    # =========================================================================
    # LISTING
    # =========================================================================

    def list_index(self) -> List[CaseSummary]:
        """Index rows in insertion order, without stale rows."""
        with self._lock:
            rows = self._conn().execute(
                """
                SELECT i.*, c.id AS backing_id
                FROM case_index i LEFT JOIN cases c ON c.id = i.id
                ORDER BY i.position ASC
                """
            ).fetchall()

        summaries = []
        for row in rows:
            if row["backing_id"] is None:
                logger.warning(f"Ignoring stale index entry {row['id']} (no stored case)")
                continue
            summaries.append(
                CaseSummary(
                    id=row["id"],
                    disease=row["disease"],
                    form=row["form"],
                    status=CaseStatus(row["status"]),
                    owner_user_id=row["owner_user_id"],
                    patient_name=row["patient_name"] or "",
                    created_at=row["created_at"],
                    last_modified_at=row["last_modified_at"],
                    submitted_at=row["submitted_at"],
                    pending_sync=bool(row["pending_sync"]),
                )
            )
        return summaries

    def list_cases(self) -> List[CaseRecord]:
        """Full records in index order."""
        records = []
        for summary in self.list_index():
            record = self.get_case(summary.id)
            if record is not None:
                records.append(record)
        return records

    def pending_cases(self) -> List[CaseRecord]:
        """Records saved locally but not yet confirmed by the remote store."""
        return [r for r in self.list_cases() if r.pending_sync]

    def pending_count(self) -> int:
        return sum(1 for s in self.list_index() if s.pending_sync)

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get a stored setting."""
        with self._lock:
            row = self._conn().execute(
                "SELECT value FROM app_settings WHERE key = ?", [key]
            ).fetchone()
        if row is None:
            return default
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            return row["value"]

    def set_setting(self, key: str, value: Any) -> None:
        """Set a stored setting."""
        value_str = json.dumps(value) if not isinstance(value, str) else value
        with self.transaction("set_setting") as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO app_settings (key, value, updated_at)
                VALUES (?, ?, ?)
                """,
                [key, value_str, datetime.now().isoformat()],
            )
