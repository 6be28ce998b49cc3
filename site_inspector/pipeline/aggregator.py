"""
Report aggregation.

Folds the settled detector outcomes of one run into a single immutable
``AnalysisReport``. Every section is always present: sections that failed,
timed out or were not requested carry empty payloads and an explicit status.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence

from site_inspector.models.schemas import (
    SECTION_MODELS,
    AnalysisReport,
    DetectorOutcome,
    FrozenModel,
    OverallStatus,
    RetrievalMetadata,
    RetrievalResult,
    SectionName,
    SectionStatus,
    empty_section,
)
from site_inspector.utils.logger import get_logger

logger = get_logger(__name__)

UNSETTLED = (SectionStatus.FAILED.value, SectionStatus.TIMED_OUT.value)


class ReportAggregator:
    """Builds the final report from detector outcomes. Stateless."""

    def aggregate(
        self,
        *,
        run_id: str,
        url: str,
        retrieval: RetrievalResult,
        outcomes: Sequence[DetectorOutcome],
        requested: Iterable[SectionName],
        started_at: datetime,
        started_monotonic: Optional[float] = None,
    ) -> AnalysisReport:
        """
        Aggregate outcomes into a report.

        Args:
            run_id: Identifier of the analysis run
            url: Normalized target URL
            retrieval: The successful retrieval result
            outcomes: One settled outcome per detector that ran
            requested: Sections selected for this run
            started_at: Wall-clock start of the run
            started_monotonic: Monotonic start, for the run duration

        Returns:
            Immutable AnalysisReport
        """
        requested_names = {SectionName(s).value for s in requested}
        by_section = {SectionName(o.section).value: o for o in outcomes}

        payloads: dict[str, FrozenModel] = {}
        statuses: dict[str, SectionStatus] = {}
        errors: dict[str, str] = {}

        for section in SectionName:
            name = section.value
            if name not in requested_names:
                payloads[name] = empty_section(name)
                statuses[name] = SectionStatus.SKIPPED
                continue

            outcome = by_section.get(name)
            if outcome is None:
                payloads[name] = empty_section(name)
                statuses[name] = SectionStatus.FAILED
                errors[name] = "Detector did not report an outcome"
                continue

            status = SectionStatus(outcome.status)
            payload = outcome.data if isinstance(outcome.data, SECTION_MODELS[name]) else None

            if status in (SectionStatus.COMPLETE, SectionStatus.PARTIAL) and payload is None:
                status = SectionStatus.FAILED
                errors[name] = f"Unexpected payload type: {type(outcome.data).__name__}"
            elif status == SectionStatus.FAILED:
                payload = None

            if outcome.error and name not in errors:
                errors[name] = outcome.error

            payloads[name] = payload if payload is not None else empty_section(name)
            statuses[name] = status

        requested_statuses = [statuses[name].value for name in requested_names]
        overall = (
            OverallStatus.COMPLETE
            if all(s == SectionStatus.COMPLETE.value for s in requested_statuses)
            else OverallStatus.PARTIAL
        )
        insufficient = bool(requested_statuses) and all(s in UNSETTLED for s in requested_statuses)

        generated_at = datetime.now(timezone.utc)
        if started_monotonic is not None:
            duration_ms = int((time.monotonic() - started_monotonic) * 1000)
        else:
            duration_ms = int((generated_at - started_at).total_seconds() * 1000)

        report = AnalysisReport(
            run_id=run_id,
            url=url,
            overall_status=overall,
            section_status=statuses,
            section_errors=errors,
            retrieval=RetrievalMetadata.from_result(retrieval),
            insufficient_data=insufficient,
            started_at=started_at,
            generated_at=max(generated_at, started_at),
            duration_ms=max(0, duration_ms),
            **payloads,
        )

        logger.info(
            "Report aggregated",
            overall_status=overall.value,
            sections={k: SectionStatus(v).value for k, v in statuses.items()},
            insufficient_data=insufficient,
        )
        return report
