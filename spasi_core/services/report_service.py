# =============================================================================
# spasi_core/services/report_service.py
# Weekly Case Aggregation for the Weekly Report Page
# =============================================================================
"""
ReportService - buckets deduplicated case records into reporting weeks.

Each record falls in the week of its effective timestamp (submitted_at,
else last_modified_at, else created_at). Weeks start on a fixed weekday
(Monday by default) so the local-only and remote-merged views always agree.
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from spasi_core.forms.schema import DISEASE_NAMES
from spasi_core.logging import get_logger
from spasi_core.offline.field_mapping import FINAL_CONDITION, resolve_alias
from spasi_core.offline.records import CaseRecord
from spasi_core.services.case_repository import CaseFilter, CaseRepository
from spasi_core.services.results import REPORT_FAILED, CaseQueryResult, run_case_query

logger = get_logger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

OUTBREAK = "KLB"
NORMAL = "Normal"

RECOVERED_VALUES = frozenset({"Recovered", "Sembuh"})
DIED_VALUES = frozenset({"Died", "Meninggal"})

SUMMARY_COLUMNS = ["week_start", "week_end", "total", "recovered", "died", "outbreak_status"]


def outbreak_status(total: int, threshold: int = 20) -> str:
    """KLB (extraordinary event) when a week's case count exceeds the threshold."""
    return OUTBREAK if total > threshold else NORMAL


def week_start_for(timestamps: pd.Series, week_start: int = 0) -> pd.Series:
    """Midnight of the first day of each timestamp's reporting week."""
    offset = (timestamps.dt.weekday - week_start) % 7
    return timestamps.dt.normalize() - pd.to_timedelta(offset, unit="D")


class ReportService:
    """
    Usage:
        reports = ReportService(week_start=settings.week_start,
                                outbreak_threshold=settings.outbreak_threshold)
        summary = reports.weekly_summary(repository.list_records(case_filter))
    """

    def __init__(self, week_start: int = 0, outbreak_threshold: int = 20):
        self.week_start = week_start
        self.outbreak_threshold = outbreak_threshold

    def cases_frame(self, cases: Sequence[CaseRecord]) -> pd.DataFrame:
        """
        One row per case with the columns the aggregations need.

        Rows whose effective timestamp cannot be parsed are dropped.
        """
        rows = []
        for case in cases:
            condition = resolve_alias(case.values, FINAL_CONDITION)
            rows.append({
                "id": case.id,
                "disease": case.disease,
                "form": case.form,
                "status": case.status.value,
                "patient_name": case.patient_name,
                "timestamp": case.effective_timestamp,
                "recovered": condition in RECOVERED_VALUES,
                "died": condition in DIED_VALUES,
            })

        df = pd.DataFrame(
            rows,
            columns=["id", "disease", "form", "status", "patient_name", "timestamp", "recovered", "died"],
        )
        df["timestamp"] = pd.to_datetime(df["timestamp"], errors="coerce", format="ISO8601")

        unparsable = df["timestamp"].isna()
        if unparsable.any():
            logger.warning(f"Skipping {int(unparsable.sum())} case(s) without a usable timestamp")
            df = df[~unparsable].copy()

        df["week_start"] = week_start_for(df["timestamp"], self.week_start)
        return df

    def weekly_summary(self, cases: Sequence[CaseRecord]) -> pd.DataFrame:
        """
        Counts per reporting week.

        Returns:
            DataFrame with week_start, week_end, total, one column per
            disease code, recovered, died and outbreak_status, sorted by week
        """
        df = self.cases_frame(cases)
        if df.empty:
            return pd.DataFrame(columns=SUMMARY_COLUMNS)

        summary = df.groupby("week_start").agg(
            total=("id", "size"),
            recovered=("recovered", "sum"),
            died=("died", "sum"),
        )
        per_disease = pd.crosstab(df["week_start"], df["disease"])
        per_disease.columns.name = None
        diseases = sorted(per_disease.columns)

        summary = summary.join(per_disease).reset_index().sort_values("week_start")
        summary["week_end"] = summary["week_start"] + pd.Timedelta(days=6)
        summary[["total", "recovered", "died"]] = summary[["total", "recovered", "died"]].astype(int)
        summary["outbreak_status"] = np.where(
            summary["total"] > self.outbreak_threshold, OUTBREAK, NORMAL
        )

        columns = ["week_start", "week_end", "total"] + diseases + ["recovered", "died", "outbreak_status"]
        return summary[columns].reset_index(drop=True)

    def disease_totals(self, cases: Sequence[CaseRecord]) -> pd.DataFrame:
        """Case count per disease, with display names, largest first."""
        df = self.cases_frame(cases)
        if df.empty:
            return pd.DataFrame(columns=["disease", "name", "total"])

        totals = df.groupby("disease").size().rename("total").reset_index()
        totals["name"] = totals["disease"].map(DISEASE_NAMES).fillna(totals["disease"])
        totals = totals.sort_values(["total", "disease"], ascending=[False, True])
        return totals[["disease", "name", "total"]].reset_index(drop=True)

    @staticmethod
    def chart_records(summary: pd.DataFrame) -> List[Dict[str, Any]]:
        """Weekly summary rows in the shape the trend chart consumes."""
        records = []
        for _, row in summary.iterrows():
            start = pd.Timestamp(row["week_start"])
            end = pd.Timestamp(row["week_end"])
            records.append({
                "name": f"{start:%d %b} - {end:%d %b %Y}",
                "week_start": start.date().isoformat(),
                "cases": int(row["total"]),
                "recovered": int(row["recovered"]),
                "deaths": int(row["died"]),
                "status": row["outbreak_status"],
            })
        return records

    def weekly_report(
        self,
        repository: CaseRepository,
        case_filter: Optional[CaseFilter] = None,
        include_remote: bool = False,
    ) -> CaseQueryResult:
        """
        Weekly summary straight from the repository.

        Returns:
            CaseQueryResult whose data is the summary DataFrame and whose
            case_count is the number of deduplicated cases aggregated
        """
        def query(selected: CaseFilter, remote: bool) -> Tuple[pd.DataFrame, int]:
            cases = repository.list_records(selected, remote)
            return self.weekly_summary(cases), len(cases)

        return run_case_query(
            logger, "Building weekly report", REPORT_FAILED, query, case_filter or CaseFilter(), include_remote
        )
