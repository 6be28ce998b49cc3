import pytest

from site_inspector.detectors.seo import SeoAnalyzer
from site_inspector.models.schemas import SectionStatus


def test_sample_metadata(make_context):
    section = SeoAnalyzer().analyze(make_context())

    assert section.title == "Example Shop - Handmade Goods"
    assert section.description == "Handmade goods shipped worldwide."
    assert section.canonical == "https://example.com/"
    assert section.open_graph == {"title": "Example Shop", "image": "https://example.com/og.png"}
    assert section.keywords == ("handmade", "goods", "shop")
    assert section.lang == "en"
    assert [h.level for h in section.headings] == [1, 2, 2, 3]
    assert section.headings[0].text == "Handmade goods"
    assert section.violations == ()


@pytest.mark.asyncio
async def test_missing_description_is_a_finding_not_a_failure(make_context):
    html = "<html lang='en'><head><title>Shop</title></head><body><h1>Shop</h1></body></html>"
    outcome = await SeoAnalyzer().run(make_context(html))

    assert outcome.status == SectionStatus.COMPLETE
    assert outcome.data.has_violation("missing_description")
    assert outcome.data.has_violation("missing_canonical")
    assert outcome.data.has_violation("missing_open_graph")
    assert not outcome.data.has_violation("missing_title")


def test_bare_page_violations(make_context):
    section = SeoAnalyzer().analyze(make_context("<html><body><p>hi</p></body></html>"))
    codes = {v.code for v in section.violations}

    assert {"missing_title", "missing_description", "missing_h1", "missing_lang"} <= codes
    errors = {v.code for v in section.violations if v.severity == "error"}
    assert errors == {"missing_title", "missing_description", "missing_h1"}


def test_length_limits(make_context):
    html = (
        f"<html lang='en'><head><title>{'t' * 61}</title>"
        f"<meta name='description' content='{'d' * 161}'></head><body><h1>x</h1></body></html>"
    )
    section = SeoAnalyzer().analyze(make_context(html))
    assert section.has_violation("title_too_long")
    assert section.has_violation("description_too_long")


def test_heading_structure(make_context):
    html = "<html lang='en'><body><h1>a</h1><h3>b</h3><h1>c</h1><h5>d</h5></body></html>"
    section = SeoAnalyzer().analyze(make_context(html))

    assert section.has_violation("multiple_h1")
    skipped = [v for v in section.violations if v.code == "heading_skipped"]
    assert len(skipped) == 1
    assert "h1 to h3" in skipped[0].message


def test_deterministic(make_context):
    first = SeoAnalyzer().analyze(make_context())
    second = SeoAnalyzer().analyze(make_context())
    assert first == second
