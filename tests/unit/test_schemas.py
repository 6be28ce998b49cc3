from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from site_inspector.models.schemas import (
    AnalysisOptions,
    AnalysisReport,
    AnalysisRequest,
    ComponentEntry,
    OverallStatus,
    RelayEndpoint,
    RetrievalMetadata,
    SectionName,
    SectionStatus,
    SeoSection,
    SeoViolation,
    TechnologyMatch,
    TechStackSection,
    empty_section,
    normalize_url,
)


@pytest.mark.parametrize("raw,expected", [
    ("example.com", "https://example.com/"),
    ("Example.COM/about#team", "https://example.com/about"),
    ("http://example.com:8080/a?b=1", "http://example.com:8080/a?b=1"),
    ("//cdn.example.org/x", "https://cdn.example.org/x"),
    ("https://user:pw@example.com/", "https://example.com/"),
    ("localhost", "https://localhost/"),
    ("http://127.0.0.1:3000", "http://127.0.0.1:3000/"),
])
def test_normalize_url(raw, expected):
    assert normalize_url(raw) == expected


@pytest.mark.parametrize("raw", ["", "   ", "ftp://example.com", "not a url", "https://nodot/", "https://-bad-.com/"])
def test_normalize_url_rejects(raw):
    with pytest.raises(ValueError):
        normalize_url(raw)


def test_analysis_request_normalizes():
    request = AnalysisRequest(url="Example.com")
    assert request.url == "https://example.com/"
    assert request.options.detectors is None

    with pytest.raises(ValidationError):
        AnalysisRequest(url="javascript:alert(1)")


def test_options_dedupe_and_select():
    options = AnalysisOptions(detectors=["seo", "design", "seo"])
    assert options.detectors == ["seo", "design"]
    assert options.selects("seo")
    assert not options.selects("tech_stack")
    assert AnalysisOptions().selects("components")


def test_options_reject_unknown_section():
    with pytest.raises(ValidationError):
        AnalysisOptions(detectors=["colors"])


def test_relay_build_url_encodes_target():
    relay = RelayEndpoint(name="r", base_url="https://relay.test/get", param="url")
    assert relay.build_url("https://example.com/a?b=1") == (
        "https://relay.test/get?url=https%3A%2F%2Fexample.com%2Fa%3Fb%3D1"
    )
    relay = RelayEndpoint(name="r", base_url="https://relay.test/p?key=1", param="quest")
    assert relay.build_url("https://example.com/").startswith("https://relay.test/p?key=1&quest=")


def test_frozen_models_reject_assignment():
    match = TechnologyMatch(name="React", category="frontend", confidence=0.6)
    with pytest.raises(ValidationError):
        match.confidence = 0.9


def test_confidence_bounds():
    with pytest.raises(ValidationError):
        TechnologyMatch(name="React", category="frontend", confidence=1.5)


def test_tech_stack_by_category():
    section = TechStackSection(technologies=(
        TechnologyMatch(name="React", category="frontend", confidence=0.9),
        TechnologyMatch(name="jQuery", category="frontend", confidence=0.8),
        TechnologyMatch(name="Hotjar", category="analytics", confidence=0.7),
    ))
    assert section.by_category == {"frontend": ["React", "jQuery"], "analytics": ["Hotjar"]}
    assert section.names() == ["React", "jQuery", "Hotjar"]


def test_seo_has_violation():
    section = SeoSection(violations=(SeoViolation(code="missing_h1", message="no h1"),))
    assert section.has_violation("missing_h1")
    assert not section.has_violation("missing_title")


def test_component_entry_defaults():
    entry = ComponentEntry(role="button", tag="button")
    assert entry.count == 1
    assert entry.complexity == "simple"


def test_empty_section_per_name():
    for name in SectionName:
        assert empty_section(name.value) is not None


def test_report_serialization():
    now = datetime.now(timezone.utc)
    report = AnalysisReport(
        run_id="run-1",
        url="https://example.com/",
        overall_status=OverallStatus.COMPLETE,
        section_status={s.value: SectionStatus.COMPLETE for s in SectionName},
        retrieval=RetrievalMetadata(
            final_url="https://example.com/",
            strategy_used="direct",
            http_status=200,
            elapsed_ms=120,
        ),
        started_at=now,
        generated_at=now,
    )
    data = report.to_dict()
    assert data["overall_status"] == "complete"
    assert data["section_status"]["seo"] == "complete"
    assert report.strategy_used == "direct"

    restored = AnalysisReport.from_json(report.to_json())
    assert restored.run_id == "run-1"
    assert restored.tech_stack.technologies == ()
