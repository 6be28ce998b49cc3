import pytest

from site_inspector.detectors.components import ComponentClassifier, normalize_label
from site_inspector.models.schemas import AnalysisOptions, Complexity
from site_inspector.services.markup_parser import parse


def _element(html, tag):
    return parse(html, "https://example.com/").find_first(tag)


def test_sample_inventory(make_context):
    section = ComponentClassifier().analyze(make_context())
    roles = [item.role for item in section.items]

    assert "header" in roles
    assert "navigation" in roles
    assert "hero" in roles
    assert "form" in roles
    assert roles.count("card") == 2
    assert section.truncated is False
    assert section.total_detected == len(section.items)


def test_header_props(make_context):
    section = ComponentClassifier().analyze(make_context())
    header = next(item for item in section.items if item.role == "header")
    assert "logo" in header.props
    assert "navigation" in header.props
    assert header.children == 3


def test_aria_role_outranks_tag_and_class():
    classifier = ComponentClassifier()
    assert classifier.classify(_element('<div role="navigation" class="card">x</div>', "div")) == "navigation"
    assert classifier.classify(_element('<header class="hero">x</header>', "header")) == "header"
    assert classifier.classify(_element('<div class="product-card">x</div>', "div")) == "card"
    assert classifier.classify(_element('<div class="cardboard">x</div>', "div")) is None


def test_input_types():
    classifier = ComponentClassifier()
    assert classifier.classify(_element('<input type="search">', "input")) == "search"
    assert classifier.classify(_element('<input type="submit" value="Go">', "input")) == "button"
    assert classifier.classify(_element('<input type="text">', "input")) is None


def test_identical_occurrences_merge(make_context):
    html = "<html><body>" + '<button class="btn">Buy</button>' * 3 + "<button>Cancel</button></body></html>"
    section = ComponentClassifier().analyze(make_context(html))

    buy = next(item for item in section.items if item.label == "buy")
    assert buy.count == 3
    assert section.total_detected == 2


def test_label_normalized():
    assert normalize_label("  Shop   NOW ") == "shop now"
    assert len(normalize_label("x" * 100)) == 60


def test_cap_truncates(make_context):
    html = "<html><body>" + "".join(f'<button>Item {i}</button>' for i in range(10)) + "</body></html>"
    section = ComponentClassifier().analyze(make_context(html, options=AnalysisOptions(max_components=4)))

    assert len(section.items) == 4
    assert section.truncated is True
    assert section.total_detected == 10
    assert [item.label for item in section.items] == ["item 0", "item 1", "item 2", "item 3"]


def test_cap_not_reached(make_context):
    html = "<html><body><button>One</button></body></html>"
    section = ComponentClassifier().analyze(make_context(html, options=AnalysisOptions(max_components=1)))
    assert section.truncated is False
    assert len(section.items) == 1


def test_navigation_complexity(make_context):
    links = "".join(f'<a href="/{i}">{i}</a>' for i in range(16))
    section = ComponentClassifier().analyze(make_context(f"<html><body><nav>{links}</nav></body></html>"))
    nav = next(item for item in section.items if item.role == "navigation")
    assert nav.complexity == Complexity.COMPLEX
    assert nav.children == 16


def test_merge_keeps_highest_complexity(make_context):
    small = "<form class='f'><input name='a'></form>"
    big = "<form class='f'>" + "".join(f"<input name='i{i}'>" for i in range(10)) + "</form>"
    section = ComponentClassifier().analyze(make_context(f"<html><body>{small}{big}</body></html>"))
    form = next(item for item in section.items if item.role == "form")
    assert form.count == 2
    assert form.complexity == Complexity.MODERATE
    assert type(form.complexity) is str
    assert form.children == 10


def test_empty_page(make_context):
    section = ComponentClassifier().analyze(make_context(""))
    assert section.items == ()
    assert section.total_detected == 0
