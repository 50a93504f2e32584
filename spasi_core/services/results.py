# =============================================================================
# spasi_core/services/results.py
# Page-Facing Results for Case Listings and Reports
# =============================================================================
"""
CaseQueryResult is what the resume and weekly report pages render instead
of catching exceptions. Next to the rows it keeps the deduplicated case
count and the selection behind them, for the page caption.

Failures keep the code of the layer that failed (STORE_001 for this
device, SYNC_001 for the server) so the page can word its message; any
other error gets the query's own code.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

from spasi_core.errors import SpasiError, handle_error
from spasi_core.logging import LogContext

LISTING_FAILED = "CASES_LIST"
REPORT_FAILED = "REPORT_BUILD"


@dataclass
class CaseQueryResult:
    """Rows for one page render, or why there are none."""
    success: bool
    data: Any = None
    case_count: int = 0
    selection: Dict[str, Any] = field(default_factory=dict)
    include_remote: bool = False
    error: Optional[str] = None
    error_code: Optional[str] = None
    recoverable: bool = True

    def __bool__(self) -> bool:
        return self.success

    @property
    def source_label(self) -> str:
        return "this device and server" if self.include_remote else "this device"


def run_case_query(
    logger,
    operation: str,
    failure_code: str,
    query: Callable[[Any, bool], Tuple[Any, int]],
    case_filter,
    include_remote: bool = False,
) -> CaseQueryResult:
    """
    Run ``query(case_filter, include_remote)`` for a page.

    Args:
        logger: Logger of the calling service
        operation: Log label, e.g. "Loading cases"
        failure_code: error_code for failures outside the case stores
        query: Returns ``(data, case_count)``
        case_filter: CaseFilter passed through to ``query``
        include_remote: Whether server rows are merged in

    Returns:
        CaseQueryResult; never raises
    """
    selection = case_filter.describe() if case_filter is not None else {}
    base = {"selection": selection, "include_remote": include_remote}

    with LogContext(logger, operation) as step:
        try:
            data, case_count = query(case_filter, include_remote)
        except SpasiError as e:
            handle_error(e, show_user_message=False)
            step.summary = f"failed with {e.code}"
            return CaseQueryResult(
                success=False, error=e.message, error_code=e.code, recoverable=e.recoverable, **base
            )
        except Exception as e:
            logger.error(f"{operation} failed: {e}", exc_info=True)
            step.summary = f"failed with {failure_code}"
            return CaseQueryResult(
                success=False, error=str(e), error_code=failure_code, recoverable=False, **base
            )
        step.summary = f"{case_count} case(s) from {'device+server' if include_remote else 'device'}"

    return CaseQueryResult(success=True, data=data, case_count=case_count, **base)
