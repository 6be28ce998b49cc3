from datetime import datetime, timedelta, timezone

import pytest

from site_inspector.models.schemas import (
    CodeSection,
    ComponentsSection,
    DesignSection,
    DetectorOutcome,
    OverallStatus,
    PerformanceSection,
    SectionName,
    SectionStatus,
    SeoSection,
    TechnologyMatch,
    TechStackSection,
    VisualSection,
)
from site_inspector.pipeline.aggregator import ReportAggregator

ALL = list(SectionName)

PAYLOADS = {
    SectionName.TECH_STACK: TechStackSection(technologies=(
        TechnologyMatch(name="jQuery", category="frontend", confidence=0.8),
    )),
    SectionName.DESIGN: DesignSection(colors=("#ffffff",)),
    SectionName.COMPONENTS: ComponentsSection(),
    SectionName.SEO: SeoSection(title="Example"),
    SectionName.PERFORMANCE: PerformanceSection(latency_ms=120),
    SectionName.VISUAL: VisualSection(effects=("shadows",)),
    SectionName.CODE: CodeSection(external_libraries=("jquery",)),
}


def outcome(section, status=SectionStatus.COMPLETE, data="default", error=None):
    return DetectorOutcome(
        section=section,
        status=status,
        data=PAYLOADS[section] if data == "default" else data,
        error=error,
    )


@pytest.fixture
def aggregate(make_retrieval):
    def _aggregate(outcomes, requested=ALL, started_at=None):
        return ReportAggregator().aggregate(
            run_id="run-1",
            url="https://example.com/",
            retrieval=make_retrieval(),
            outcomes=outcomes,
            requested=requested,
            started_at=started_at or datetime.now(timezone.utc),
        )
    return _aggregate


def test_all_complete(aggregate):
    report = aggregate([outcome(s) for s in ALL])

    assert report.overall_status == OverallStatus.COMPLETE
    assert report.insufficient_data is False
    assert all(status == SectionStatus.COMPLETE for status in report.section_status.values())
    assert report.tech_stack.names() == ["jQuery"]
    assert report.seo.title == "Example"
    assert report.strategy_used == "direct"
    assert report.section_errors == {}


def test_failed_section_is_empty_with_error(aggregate):
    outcomes = [outcome(s) for s in ALL if s != SectionName.DESIGN]
    outcomes.append(outcome(
        SectionName.DESIGN, SectionStatus.FAILED,
        data=DesignSection(colors=("#000000",)), error="design: boom",
    ))
    report = aggregate(outcomes)

    assert report.overall_status == OverallStatus.PARTIAL
    assert report.section_status["design"] == SectionStatus.FAILED
    assert report.design == DesignSection()
    assert report.section_errors["design"] == "design: boom"
    assert report.insufficient_data is False


def test_timed_out_keeps_partial_payload(aggregate):
    partial = SeoSection(title="Partial")
    outcomes = [outcome(s) for s in ALL if s != SectionName.SEO]
    outcomes.append(outcome(SectionName.SEO, SectionStatus.TIMED_OUT, data=partial, error="timed out"))
    report = aggregate(outcomes)

    assert report.section_status["seo"] == SectionStatus.TIMED_OUT
    assert report.seo.title == "Partial"
    assert report.overall_status == OverallStatus.PARTIAL


def test_timed_out_without_payload_is_empty(aggregate):
    outcomes = [outcome(s) for s in ALL if s != SectionName.SEO]
    outcomes.append(outcome(SectionName.SEO, SectionStatus.TIMED_OUT, data=None))
    assert aggregate(outcomes).seo == SeoSection()


def test_partial_section_makes_report_partial(aggregate):
    outcomes = [outcome(s) for s in ALL if s != SectionName.DESIGN]
    outcomes.append(outcome(
        SectionName.DESIGN, SectionStatus.PARTIAL,
        data=DesignSection(errors={"fonts": "boom"}),
    ))
    report = aggregate(outcomes)
    assert report.overall_status == OverallStatus.PARTIAL
    assert report.section_status["design"] == SectionStatus.PARTIAL


def test_every_section_failed_is_insufficient(aggregate):
    report = aggregate([outcome(s, SectionStatus.FAILED, data=None, error="x") for s in ALL])
    assert report.overall_status == OverallStatus.PARTIAL
    assert report.insufficient_data is True


def test_missing_outcome_is_failed(aggregate):
    report = aggregate([outcome(s) for s in ALL if s != SectionName.PERFORMANCE])
    assert report.section_status["performance"] == SectionStatus.FAILED
    assert "performance" in report.section_errors


def test_wrong_payload_type_is_failed(aggregate):
    outcomes = [outcome(s) for s in ALL if s != SectionName.SEO]
    outcomes.append(outcome(SectionName.SEO, data=DesignSection()))
    report = aggregate(outcomes)
    assert report.section_status["seo"] == SectionStatus.FAILED
    assert report.seo == SeoSection()


def test_unrequested_sections_skipped(aggregate):
    requested = [SectionName.SEO]
    report = aggregate([outcome(SectionName.SEO)], requested=requested)

    assert report.section_status["seo"] == SectionStatus.COMPLETE
    assert report.section_status["design"] == SectionStatus.SKIPPED
    assert report.overall_status == OverallStatus.COMPLETE
    assert set(report.section_status) == {s.value for s in SectionName}


def test_nothing_requested(aggregate):
    report = aggregate([], requested=[])
    assert report.overall_status == OverallStatus.COMPLETE
    assert report.insufficient_data is False


def test_generated_not_before_started(aggregate):
    future = datetime.now(timezone.utc) + timedelta(seconds=5)
    report = aggregate([outcome(s) for s in ALL], started_at=future)
    assert report.generated_at >= report.started_at
    assert report.duration_ms == 0


def test_report_is_frozen(aggregate):
    report = aggregate([outcome(s) for s in ALL])
    with pytest.raises(Exception):
        report.overall_status = OverallStatus.PARTIAL
    with pytest.raises(TypeError):
        report.section_status["seo"] = SectionStatus.FAILED
    with pytest.raises(TypeError):
        report.section_errors["seo"] = "late error"
    with pytest.raises(TypeError):
        report.seo.open_graph["title"] = "late title"
    with pytest.raises(TypeError):
        report.design.errors["colors"] = "late error"


def test_mappings_dump_as_plain_dicts(aggregate):
    report = aggregate([outcome(s) for s in ALL])
    payload = report.to_dict()
    assert type(payload["section_status"]) is dict
    assert type(payload["section_errors"]) is dict
    assert type(payload["seo"]["open_graph"]) is dict


def test_serializes_to_json(aggregate):
    report = aggregate([outcome(s) for s in ALL])
    payload = report.to_dict(mode="json")
    assert payload["retrieval"]["strategy_used"] == "direct"
    assert payload["section_status"]["tech_stack"] == "complete"
    assert isinstance(payload["generated_at"], str)
