"""
Pydantic models and schemas for the Site Inspector pipeline.

This module defines all data structures used throughout the pipeline,
ensuring type safety, validation, and serialization consistency.

Models:
    - AnalysisRequest / AnalysisOptions: Input validation
    - RelayEndpoint: Immutable relay configuration
    - RetrievalResult: Retriever output and telemetry
    - TechStackSection, DesignSection, ComponentsSection,
      SeoSection, PerformanceSection: Detector payloads
    - DetectorOutcome: One detector's settled result
    - AnalysisReport: Complete, immutable report
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Annotated, Any, Literal, Mapping, Optional, Self
from urllib.parse import urlencode, urlsplit, urlunsplit

from pydantic import (
    AfterValidator,
    BaseModel as PydanticBaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_serializer,
    field_validator,
)


# =============================================================================
# Base Configuration
# =============================================================================

class BaseModel(PydanticBaseModel):
    """Base model with common configuration for all schemas."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_json(self, **kwargs) -> str:
        """Serialize model to JSON string."""
        return self.model_dump_json(indent=2, **kwargs)

    def to_dict(self, **kwargs) -> dict[str, Any]:
        """Serialize model to dictionary."""
        return self.model_dump(**kwargs)

    @classmethod
    def from_json(cls, json_str: str) -> Self:
        """Deserialize model from JSON string."""
        return cls.model_validate_json(json_str)


class FrozenModel(BaseModel):
    """Immutable model; assignment after construction raises."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        use_enum_values=True,
        frozen=True,
    )


# =============================================================================
# Enums
# =============================================================================

class SectionName(str, Enum):
    """Named subdivisions of the report, in registry order."""
    TECH_STACK = "tech_stack"
    DESIGN = "design"
    COMPONENTS = "components"
    SEO = "seo"
    PERFORMANCE = "performance"
    VISUAL = "visual"
    CODE = "code"


class SectionStatus(str, Enum):
    """Completeness of one report section."""
    COMPLETE = "complete"
    PARTIAL = "partial"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    SKIPPED = "skipped"


class OverallStatus(str, Enum):
    """Completeness of the whole report."""
    COMPLETE = "complete"
    PARTIAL = "partial"
    FAILED = "failed"


class PipelineStage(str, Enum):
    """Orchestrator states, reported to progress listeners."""
    IDLE = "idle"
    RETRIEVING = "retrieving"
    PARSING = "parsing"
    DETECTING = "detecting"
    AGGREGATING = "aggregating"
    DONE = "done"
    FAILED = "failed"


class RetrievalErrorKind(str, Enum):
    """Classification of retrieval failures."""
    UNREACHABLE = "unreachable"
    BLOCKED = "blocked"
    TIMEOUT = "timeout"
    HTTP_ERROR = "http_error"


class PerformanceTier(str, Enum):
    """Coarse load-performance bucket."""
    FAST = "fast"
    MODERATE = "moderate"
    SLOW = "slow"


class Complexity(str, Enum):
    """Estimated complexity of a UI component."""
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


# =============================================================================
# Read-only Mappings
# =============================================================================

def _read_only(value: Mapping) -> Mapping:
    return MappingProxyType(dict(value))


def _plain_dict(value: Mapping) -> dict:
    return dict(value)


# Mapping fields of frozen models reject item assignment and serialize
# back to plain dicts.
ReadOnlyStrMap = Annotated[
    dict[str, str],
    AfterValidator(_read_only),
    PlainSerializer(_plain_dict, return_type=dict[str, str]),
]

StatusMap = Annotated[
    dict[str, SectionStatus],
    AfterValidator(_read_only),
    PlainSerializer(_plain_dict, return_type=dict[str, str]),
]


# =============================================================================
# Validators (Reusable)
# =============================================================================

# Dotted hostname with alphabetic TLD, localhost, or IPv4 literal
HOST_PATTERN = re.compile(
    r"^(?:localhost"
    r"|(?:\d{1,3}\.){3}\d{1,3}"
    r"|(?:(?!-)[a-z0-9-]{1,63}(?<!-)\.)+[a-z]{2,63})$"
)


def normalize_url(url: str) -> str:
    """
    Normalize and validate a caller-supplied URL.

    Defaults the scheme to https, lower-cases the host, drops fragments and
    credentials, and rejects anything whose host fails the host-pattern check.

    Example:
        >>> normalize_url("Example.com/about#team")
        'https://example.com/about'
    """
    if not isinstance(url, str) or not url.strip():
        raise ValueError("URL must be a non-empty string")

    url = url.strip()
    if url.startswith("//"):
        url = "https:" + url
    elif "://" not in url:
        url = "https://" + url

    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    if scheme not in ("http", "https"):
        raise ValueError(f"Unsupported URL scheme: '{parts.scheme}'")

    host = (parts.hostname or "").lower().rstrip(".")
    if not HOST_PATTERN.match(host):
        raise ValueError(f"Invalid host in URL: '{host or url}'")

    port = parts.port
    netloc = f"{host}:{port}" if port else host
    return urlunsplit((scheme, netloc, parts.path or "/", parts.query, ""))


# =============================================================================
# Input Models
# =============================================================================

class AnalysisOptions(BaseModel):
    """
    Per-call options for an analysis run.

    Example:
        >>> AnalysisOptions(timeout_ms=10_000, detectors=["seo", "design"])
    """

    timeout_ms: Optional[int] = Field(
        default=None,
        ge=1,
        description="Overall pipeline budget override in milliseconds",
    )
    detectors: Optional[list[SectionName]] = Field(
        default=None,
        description="Subset of sections to run (all when omitted)",
    )
    max_components: Optional[int] = Field(
        default=None,
        ge=1,
        description="Override for the component inventory cap",
    )
    fetch_linked_stylesheets: bool = Field(
        default=False,
        description="Fetch linked stylesheets so design tokens include them",
    )

    @field_validator("detectors")
    @classmethod
    def dedupe_detectors(cls, v: Optional[list]) -> Optional[list]:
        """Remove duplicate section names, keeping first-seen order."""
        if v is None:
            return None
        return list(dict.fromkeys(v))

    def selects(self, section: str) -> bool:
        """Whether the given section should run."""
        return self.detectors is None or section in self.detectors


class AnalysisRequest(BaseModel):
    """Input model for one analysis request."""

    url: str = Field(..., description="Target URL; normalized on validation")
    options: AnalysisOptions = Field(default_factory=AnalysisOptions)

    @field_validator("url", mode="before")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate and normalize the target URL."""
        return normalize_url(v)


# =============================================================================
# Retrieval Models
# =============================================================================

class RelayEndpoint(FrozenModel):
    """A third-party relay that fetches the target on the caller's behalf."""

    name: str
    base_url: str
    param: str = "url"
    response_format: Literal["raw", "json"] = "raw"
    json_field: str = "contents"

    def build_url(self, target: str) -> str:
        """Embed the URL-encoded target as the relay's query parameter."""
        separator = "&" if "?" in self.base_url else "?"
        return f"{self.base_url}{separator}{urlencode({self.param: target})}"


class RetrievalResult(FrozenModel):
    """Raw page content plus retrieval telemetry."""

    final_url: str
    body: str
    strategy_used: str = Field(description="'direct' or the serving relay's name")
    http_status: int
    elapsed_ms: int = Field(ge=0)
    content_bytes: int = Field(default=0, ge=0)
    content_type: Optional[str] = None


class RetrievalMetadata(FrozenModel):
    """Retrieval summary carried into the report."""

    final_url: str
    strategy_used: str
    http_status: int
    elapsed_ms: int
    content_bytes: int = 0

    @classmethod
    def from_result(cls, result: RetrievalResult) -> "RetrievalMetadata":
        return cls(
            final_url=result.final_url,
            strategy_used=result.strategy_used,
            http_status=result.http_status,
            elapsed_ms=result.elapsed_ms,
            content_bytes=result.content_bytes,
        )


# =============================================================================
# Section Models
# =============================================================================

class TechnologyMatch(FrozenModel):
    """One detected technology with combined confidence."""

    name: str
    category: str
    confidence: float = Field(ge=0.0, le=1.0)
    evidence: tuple[str, ...] = ()
    version: Optional[str] = None


class TechStackSection(FrozenModel):
    """Detected technologies, sorted by confidence descending."""

    technologies: tuple[TechnologyMatch, ...] = ()

    @property
    def by_category(self) -> dict[str, list[str]]:
        grouped: dict[str, list[str]] = {}
        for tech in self.technologies:
            grouped.setdefault(tech.category, []).append(tech.name)
        return grouped

    def names(self) -> list[str]:
        return [t.name for t in self.technologies]


class SpacingValue(FrozenModel):
    """A spacing literal and how often it appears."""

    value: str
    count: int = Field(ge=1)


class DesignSection(FrozenModel):
    """Design tokens extracted from stylesheet text."""

    colors: tuple[str, ...] = ()
    fonts: tuple[str, ...] = ()
    spacing: tuple[SpacingValue, ...] = ()
    breakpoints: tuple[int, ...] = ()
    errors: ReadOnlyStrMap = Field(
        default_factory=dict,
        validate_default=True,
        description="Sub-extraction name -> error for sub-fields that failed",
    )


class ComponentEntry(FrozenModel):
    """A classified UI component, merged across identical occurrences."""

    role: str
    tag: str
    label: str = ""
    count: int = Field(default=1, ge=1)
    children: int = 0
    props: tuple[str, ...] = ()
    complexity: Complexity = Complexity.SIMPLE


class ComponentsSection(FrozenModel):
    """Component inventory, capped to bound aggregation cost."""

    items: tuple[ComponentEntry, ...] = ()
    truncated: bool = False
    total_detected: int = 0


class HeadingEntry(FrozenModel):
    level: int = Field(ge=1, le=6)
    text: str = ""


class SeoViolation(FrozenModel):
    """An SEO finding. Violations are data, never section failures."""

    code: str
    message: str
    severity: Literal["error", "warning"] = "warning"


class SeoSection(FrozenModel):
    """Extracted SEO metadata and the violations found in it."""

    title: Optional[str] = None
    description: Optional[str] = None
    canonical: Optional[str] = None
    open_graph: ReadOnlyStrMap = Field(default_factory=dict, validate_default=True)
    keywords: tuple[str, ...] = ()
    meta_tag_count: int = 0
    lang: Optional[str] = None
    headings: tuple[HeadingEntry, ...] = ()
    violations: tuple[SeoViolation, ...] = ()

    def has_violation(self, code: str) -> bool:
        return any(v.code == code for v in self.violations)


class PerformanceSection(FrozenModel):
    """Load-performance metrics derived from telemetry and document size."""

    latency_ms: int = 0
    transfer_bytes: int = 0
    size_kb: float = 0.0
    script_count: int = 0
    stylesheet_count: int = 0
    image_count: int = 0
    request_count: int = 0
    has_minified_css: bool = False
    has_minified_js: bool = False
    estimated_load_time_s: float = 0.0
    score: int = Field(default=0, ge=0, le=100)
    tier: Optional[PerformanceTier] = None


class VisualSection(FrozenModel):
    """Animation, graphics and layout traits of the page's presentation."""

    animations: tuple[str, ...] = ()
    background_type: Literal["solid", "gradient", "image", "canvas"] = "solid"
    graphics: tuple[str, ...] = ()
    effects: tuple[str, ...] = ()
    color_scheme: Literal["light", "dark"] = "light"
    supports_dark_mode: bool = False
    layout: Literal["grid", "flexbox", "framework_grid", "standard"] = "standard"

    @property
    def has_animations(self) -> bool:
        return bool(self.animations)


class StructuredDataBlock(FrozenModel):
    """Summary of one embedded JSON or JSON-LD data block."""

    script_type: str
    schema_types: tuple[str, ...] = ()
    keys: tuple[str, ...] = ()
    size_bytes: int = 0


class CodeSection(FrozenModel):
    """Embedded data, inline code and third-party code references."""

    structured_data: tuple[StructuredDataBlock, ...] = ()
    inline_scripts: tuple[str, ...] = ()
    external_libraries: tuple[str, ...] = ()
    api_endpoints: tuple[str, ...] = ()
    config_hints: tuple[str, ...] = ()
    component_frameworks: tuple[str, ...] = ()

    @property
    def has_react(self) -> bool:
        return "React" in self.component_frameworks

    @property
    def has_vue(self) -> bool:
        return "Vue" in self.component_frameworks


SECTION_MODELS: dict[str, type[FrozenModel]] = {
    SectionName.TECH_STACK.value: TechStackSection,
    SectionName.DESIGN.value: DesignSection,
    SectionName.COMPONENTS.value: ComponentsSection,
    SectionName.SEO.value: SeoSection,
    SectionName.PERFORMANCE.value: PerformanceSection,
    SectionName.VISUAL.value: VisualSection,
    SectionName.CODE.value: CodeSection,
}


def empty_section(section: str) -> FrozenModel:
    """Default empty payload for a section that produced nothing."""
    return SECTION_MODELS[section]()


# =============================================================================
# Detector & Report Models
# =============================================================================

class DetectorOutcome(FrozenModel):
    """The settled result of one detector in one run."""

    section: SectionName
    status: SectionStatus
    data: Optional[Any] = None
    error: Optional[str] = None
    duration_ms: int = 0


class AnalysisReport(FrozenModel):
    """
    Complete analysis report.

    Immutable once aggregated. Every section is always present; sections
    that failed or timed out carry empty payloads and an explicit status.
    """

    run_id: str
    url: str
    tech_stack: TechStackSection = Field(default_factory=TechStackSection)
    design: DesignSection = Field(default_factory=DesignSection)
    components: ComponentsSection = Field(default_factory=ComponentsSection)
    seo: SeoSection = Field(default_factory=SeoSection)
    performance: PerformanceSection = Field(default_factory=PerformanceSection)
    visual: VisualSection = Field(default_factory=VisualSection)
    code: CodeSection = Field(default_factory=CodeSection)
    overall_status: OverallStatus
    section_status: StatusMap
    section_errors: ReadOnlyStrMap = Field(default_factory=dict, validate_default=True)
    retrieval: RetrievalMetadata
    insufficient_data: bool = False
    started_at: datetime
    generated_at: datetime
    duration_ms: int = 0

    @property
    def strategy_used(self) -> str:
        return self.retrieval.strategy_used

    @field_serializer("started_at", "generated_at")
    def serialize_datetime(self, value: datetime) -> str:
        """Serialize datetime to ISO format string."""
        if value.tzinfo is None:
            return value.isoformat() + "Z"
        return value.isoformat()
