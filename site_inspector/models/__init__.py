"""Data models module for Site Inspector."""

from site_inspector.models.schemas import (
    # Base Models
    BaseModel,
    FrozenModel,

    # Enums
    SectionName,
    SectionStatus,
    OverallStatus,
    PipelineStage,
    RetrievalErrorKind,
    PerformanceTier,
    Complexity,

    # Input Models
    AnalysisOptions,
    AnalysisRequest,

    # Retrieval Models
    RelayEndpoint,
    RetrievalResult,
    RetrievalMetadata,

    # Section Models
    TechnologyMatch,
    TechStackSection,
    SpacingValue,
    DesignSection,
    ComponentEntry,
    ComponentsSection,
    HeadingEntry,
    SeoViolation,
    SeoSection,
    PerformanceSection,
    VisualSection,
    StructuredDataBlock,
    CodeSection,
    SECTION_MODELS,
    empty_section,

    # Report Models
    DetectorOutcome,
    AnalysisReport,

    # Validators
    normalize_url,
)

__all__ = [
    # Base Models
    "BaseModel",
    "FrozenModel",

    # Enums
    "SectionName",
    "SectionStatus",
    "OverallStatus",
    "PipelineStage",
    "RetrievalErrorKind",
    "PerformanceTier",
    "Complexity",

    # Input Models
    "AnalysisOptions",
    "AnalysisRequest",

    # Retrieval Models
    "RelayEndpoint",
    "RetrievalResult",
    "RetrievalMetadata",

    # Section Models
    "TechnologyMatch",
    "TechStackSection",
    "SpacingValue",
    "DesignSection",
    "ComponentEntry",
    "ComponentsSection",
    "HeadingEntry",
    "SeoViolation",
    "SeoSection",
    "PerformanceSection",
    "VisualSection",
    "StructuredDataBlock",
    "CodeSection",
    "SECTION_MODELS",
    "empty_section",

    # Report Models
    "DetectorOutcome",
    "AnalysisReport",

    # Validators
    "normalize_url",
]
