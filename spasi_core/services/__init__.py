# =============================================================================
# spasi_core/services/__init__.py
# Service Layer for SPASI
# Separates case-reporting logic from the Streamlit pages
# =============================================================================
"""
Service Layer for SPASI

Usage Example:
-------------
    from spasi_core.services import get_app_context, CaseFilter

    ctx = get_app_context()

    # Resume page: one row per patient, submitted/completed only
    cases = ctx.repository.list_cases(CaseFilter(disease="campak-rubela", form="mr-01"))

    # Weekly report page
    result = ctx.reports.weekly_report(ctx.repository, CaseFilter(disease="campak-rubela"))
    if result.success:
        summary_df = result.data

    # Form page
    session = ctx.new_session("campak-rubela", "mr-01")
    session.set_value("Nama_kasus", "Budi")
    notify_sync_result(session.save_draft())
"""

from .results import CaseQueryResult, run_case_query
from .case_repository import CaseFilter, CaseRepository, dedup_by_patient, search_by_patient
from .report_service import ReportService, outbreak_status
from .form_session import FormSession
from .app_context import AppContext, build_context, get_app_context

__all__ = [
    # Results
    "CaseQueryResult",
    "run_case_query",
    # Cases
    "CaseFilter",
    "CaseRepository",
    "dedup_by_patient",
    "search_by_patient",
    # Reports
    "ReportService",
    "outbreak_status",
    # Form
    "FormSession",
    # Wiring
    "AppContext",
    "build_context",
    "get_app_context",
]
