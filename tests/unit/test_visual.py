import pytest

from site_inspector.detectors.visual import VisualAnalyzer, is_dark
from site_inspector.models.schemas import SectionStatus


def page(css: str = "", body: str = "", head: str = "", body_attrs: str = "") -> str:
    return f"<html><head>{head}<style>{css}</style></head><body {body_attrs}>{body}</body></html>"


def test_sample_presentation(make_context):
    section = VisualAnalyzer().analyze(make_context())

    assert section.animations == ()
    assert section.has_animations is False
    assert section.effects == ("transparency",)
    assert section.background_type == "solid"
    assert section.graphics == ()
    assert section.color_scheme == "light"
    assert section.supports_dark_mode is False
    assert section.layout == "standard"


def test_css_and_script_animations(make_context):
    css = (
        "@keyframes spin { from { transform: rotate(0) } to { transform: rotate(360deg) } }"
        ".btn { transition: color .2s; }"
    )
    head = '<script src="https://cdn.jsdelivr.net/npm/gsap@3/dist/gsap.min.js"></script>'
    section = VisualAnalyzer().analyze(make_context(page(css, head=head)))

    assert section.animations == ("css_keyframes", "css_transforms", "css_transitions", "gsap")
    assert section.has_animations is True


def test_animation_words_in_text_are_ignored(make_context):
    html = page(body="<p>Read our transform: guide and lottie tips</p>")
    assert VisualAnalyzer().analyze(make_context(html)).animations == ()


@pytest.mark.parametrize("css, body, expected", [
    (".hero { background: linear-gradient(#fff, #000); }", "", "gradient"),
    ("body { background-image: url('/bg.jpg'); }", "", "image"),
    ("", "<canvas id='scene'></canvas>", "canvas"),
    (".a { background: #fff; }", "", "solid"),
])
def test_background_type(make_context, css, body, expected):
    section = VisualAnalyzer().analyze(make_context(page(css, body)))
    assert section.background_type == expected


def test_graphics(make_context):
    body = (
        "<svg viewBox='0 0 10 10'><circle r='4'></circle></svg>"
        "<video src='/intro.mp4'></video>"
        "<img src='/spinner.gif'><img src='/hero.webp'>"
    )
    section = VisualAnalyzer().analyze(make_context(page(body=body)))
    assert section.graphics == ("svg", "video", "gif", "modern_image_formats")


def test_picture_sources_count_as_modern_formats(make_context):
    body = "<picture><source type='image/avif' srcset='/a.avif'><img src='/a.jpg'></picture>"
    section = VisualAnalyzer().analyze(make_context(page(body=body)))
    assert section.graphics == ("modern_image_formats",)


def test_effects(make_context):
    css = (
        ".card { box-shadow: 0 1px 2px #000; border-top-left-radius: 4px; }"
        ".glass { backdrop-filter: blur(4px); }"
        ".muted { opacity: .5; }"
    )
    section = VisualAnalyzer().analyze(make_context(page(css)))
    assert section.effects == ("shadows", "blur", "transparency", "rounded_corners", "backdrop_filter")


@pytest.mark.parametrize("css, body_attrs, expected", [
    ("body { background-color: #111; }", "", "dark"),
    ("html, body { background: rgba(0, 0, 0, 1) }", "", "dark"),
    ("body { background: #fafafa; }", "", "light"),
    ("", "class='theme-dark'", "dark"),
    ("", "data-theme='dark'", "dark"),
    ("", "style='background: black'", "dark"),
    (".sidebar { background: #000; }", "", "light"),
])
def test_color_scheme(make_context, css, body_attrs, expected):
    section = VisualAnalyzer().analyze(make_context(page(css, body_attrs=body_attrs)))
    assert section.color_scheme == expected


def test_dark_mode_support_is_not_a_dark_scheme(make_context):
    css = "body { background: #fff; } @media (prefers-color-scheme: dark) { body { background: #000; } }"
    section = VisualAnalyzer().analyze(make_context(page(css)))

    assert section.supports_dark_mode is True
    assert section.color_scheme == "light"


def test_color_scheme_meta_declares_dark_support(make_context):
    head = "<meta name='color-scheme' content='light dark'>"
    assert VisualAnalyzer().analyze(make_context(page(head=head))).supports_dark_mode is True


@pytest.mark.parametrize("css, body, expected", [
    (".layout { display: grid; }", "", "grid"),
    (".nav { display: inline-flex; }", "", "flexbox"),
    ("", "<div class='container'><div class='row'><div class='col-md-6'>a</div></div></div>", "framework_grid"),
    ("", "<div class='row'>a</div>", "standard"),
])
def test_layout(make_context, css, body, expected):
    assert VisualAnalyzer().analyze(make_context(page(css, body))).layout == expected


def test_is_dark():
    assert is_dark("#000")
    assert is_dark("rgb(20, 20, 40)")
    assert not is_dark("#ffaaff")
    assert not is_dark("rgba(0, 0, 0, 0.5)")
    assert not is_dark("transparent")


@pytest.mark.asyncio
async def test_run_is_complete(make_context):
    outcome = await VisualAnalyzer().run(make_context())
    assert outcome.status == SectionStatus.COMPLETE
    assert outcome.data.effects == ("transparency",)


@pytest.mark.asyncio
async def test_cancelled_before_start(make_context):
    context = make_context()
    context.cancel()
    outcome = await VisualAnalyzer().run(context)
    assert outcome.status == SectionStatus.TIMED_OUT
    assert outcome.data is None
