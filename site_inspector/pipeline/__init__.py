"""Pipeline module for Site Inspector."""

from site_inspector.pipeline.aggregator import ReportAggregator
from site_inspector.pipeline.orchestrator import (
    AnalysisStateDict,
    ParseError,
    PipelineError,
    ProgressCallback,
    SiteAnalyzer,
    analyze,
)

__all__ = [
    "SiteAnalyzer",
    "ReportAggregator",
    "PipelineError",
    "ParseError",
    "AnalysisStateDict",
    "ProgressCallback",
    "analyze",
]
