# =============================================================================
# spasi_core/services/app_context.py
# Wiring of the Case-Reporting Core for the Streamlit App
# =============================================================================
"""
Builds the object graph once per process: settings, local store, remote
store, connectivity monitor, sync coordinator and the read-side services.

Usage:
    from spasi_core.services import get_app_context

    ctx = get_app_context()
    session = ctx.new_session("campak-rubela", "mr-01")
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

import streamlit as st

from spasi_core.auth import get_current_user
from spasi_core.config import SpasiSettings, load_settings
from spasi_core.logging import get_logger, setup_logging
from spasi_core.offline.autosave import AutosaveScheduler
from spasi_core.offline.connection_manager import ConnectionManager
from spasi_core.offline.local_store import LocalStore
from spasi_core.offline.remote_store import SupabaseCaseStore
from spasi_core.offline.sync_engine import RemoteSync
from spasi_core.services.case_repository import CaseRepository
from spasi_core.services.form_session import FormSession
from spasi_core.services.report_service import ReportService

logger = get_logger(__name__)


@dataclass
class AppContext:
    """Everything a page needs, created together and closed together."""
    settings: SpasiSettings
    store: LocalStore
    sync: RemoteSync
    repository: CaseRepository
    reports: ReportService
    connection: Optional[ConnectionManager] = None

    def new_session(self, disease: str, form: str, case_id: Optional[str] = None) -> FormSession:
        return FormSession(disease, form, self.sync, case_id=case_id)

    def autosave_for(self, session: FormSession) -> AutosaveScheduler:
        return AutosaveScheduler(session, interval=self.settings.autosave_interval)

    def close(self) -> None:
        if self.connection is not None:
            self.connection.stop_monitoring()
        self.store.close()
        logger.info("Application context closed")


def build_context(
    settings: Optional[SpasiSettings] = None,
    start_monitoring: bool = True,
) -> AppContext:
    """
    Create the core services.

    Without Supabase credentials the device runs local-only: no remote
    store, no connectivity monitor, and saves never become pending.
    """
    settings = settings or load_settings()
    store = LocalStore(settings.local_db_path).open()

    remote = None
    connection = None
    if settings.remote_configured:
        remote = SupabaseCaseStore.from_settings(settings)
        connection = ConnectionManager.from_settings(settings)
    else:
        logger.warning("Supabase is not configured; running in local-only mode")

    sync = RemoteSync(store, remote, connection, current_user=get_current_user)
    if connection is not None:
        # Registered before the first check so a reachable remote drains the backlog
        connection.initialize(start_monitoring=start_monitoring)

    return AppContext(
        settings=settings,
        store=store,
        sync=sync,
        repository=CaseRepository(store, sync),
        reports=ReportService(settings.week_start, settings.outbreak_threshold),
        connection=connection,
    )


@st.cache_resource
def get_app_context() -> AppContext:
    """Process-wide context shared by every Streamlit session."""
    setup_logging()
    return build_context()
