"""Report-section detectors and the default ordered registry."""

from site_inspector.detectors.base import (
    Detector,
    DetectorCancelled,
    DetectorContext,
    DetectorFailure,
    DetectorTimeout,
)
from site_inspector.detectors.code_data import CodeExtractor
from site_inspector.detectors.components import ComponentClassifier
from site_inspector.detectors.design_system import DesignSystemExtractor
from site_inspector.detectors.performance import PerformanceProfiler
from site_inspector.detectors.seo import SeoAnalyzer
from site_inspector.detectors.tech_stack import TechStackDetector
from site_inspector.detectors.visual import VisualAnalyzer

DEFAULT_DETECTORS: tuple[Detector, ...] = (
    TechStackDetector(),
    DesignSystemExtractor(),
    ComponentClassifier(),
    SeoAnalyzer(),
    PerformanceProfiler(),
    VisualAnalyzer(),
    CodeExtractor(),
)

__all__ = [
    "Detector",
    "DetectorContext",
    "DetectorFailure",
    "DetectorTimeout",
    "DetectorCancelled",
    "TechStackDetector",
    "DesignSystemExtractor",
    "ComponentClassifier",
    "SeoAnalyzer",
    "PerformanceProfiler",
    "VisualAnalyzer",
    "CodeExtractor",
    "DEFAULT_DETECTORS",
]
