"""Animation, graphics, effect and layout traits of the page's presentation."""

from __future__ import annotations

import re
from typing import Optional

from site_inspector.detectors.base import Detector, DetectorContext
from site_inspector.detectors.design_system import COLOR_RE, COMMENT_RE, normalize_color
from site_inspector.models.schemas import SectionName, VisualSection
from site_inspector.services.markup_parser import ParsedDocument

RULE_RE = re.compile(r"([^{}]*)\{([^{}]*)\}")
ROOT_SELECTOR_RE = re.compile(r"(?:^|[\s,>])(?:html|body|:root)(?=$|[\s,.:#\[>{])", re.IGNORECASE)
BACKGROUND_RE = re.compile(r"(?<![-\w])background(?:-color)?\s*:\s*([^;]+)", re.IGNORECASE)
DARK_CLASS_RE = re.compile(r"(?:^|[-_\s])dark(?:$|[-_\s])", re.IGNORECASE)
DARK_LUMINANCE = 0.35

CSS_ANIMATIONS = (
    ("css_keyframes", re.compile(r"@(?:-webkit-)?keyframes\b|(?<![-\w])animation(?:-name)?\s*:", re.IGNORECASE)),
    ("css_transforms", re.compile(r"(?<![-\w])transform\s*:", re.IGNORECASE)),
    ("css_transitions", re.compile(r"(?<![-\w])transition(?:-[a-z]+)*\s*:", re.IGNORECASE)),
)

SCRIPT_ANIMATIONS = (
    ("gsap", re.compile(r"\bgsap\b|greensock", re.IGNORECASE)),
    ("anime_js", re.compile(r"\banime(?:\.min)?\.js|\banimejs\b", re.IGNORECASE)),
    ("lottie", re.compile(r"\blottie", re.IGNORECASE)),
    ("three_js", re.compile(r"\bthree(?:\.module)?(?:\.min)?\.js|\bTHREE\.")),
    ("framer_motion", re.compile(r"framer-motion", re.IGNORECASE)),
)

EFFECTS = (
    ("shadows", re.compile(r"(?:box|text)-shadow\s*:|drop-shadow\(", re.IGNORECASE)),
    ("blur", re.compile(r"(?<![-\w])filter\s*:|\bblur\(", re.IGNORECASE)),
    ("transparency", re.compile(r"(?<![-\w])opacity\s*:|\b(?:rgba|hsla)\(", re.IGNORECASE)),
    ("rounded_corners", re.compile(r"border(?:-[a-z]+)*-radius\s*:", re.IGNORECASE)),
    ("backdrop_filter", re.compile(r"backdrop-filter\s*:", re.IGNORECASE)),
)

GRADIENT_RE = re.compile(r"(?:repeating-)?(?:linear|radial|conic)-gradient\(", re.IGNORECASE)
BACKGROUND_IMAGE_RE = re.compile(r"background(?:-image)?\s*:[^;}]*url\(", re.IGNORECASE)
WEBGL_RE = re.compile(r"webgl|\bTHREE\.|\bthree(?:\.min)?\.js", re.IGNORECASE)
GIF_RE = re.compile(r"\.gif(?:$|[?#)'\"\s])", re.IGNORECASE)
MODERN_IMAGE_RE = re.compile(r"\.(?:webp|avif)(?:$|[?#])", re.IGNORECASE)
GRID_RE = re.compile(r"(?<![-\w])display\s*:\s*(?:inline-)?grid\b", re.IGNORECASE)
FLEX_RE = re.compile(r"(?<![-\w])display\s*:\s*(?:inline-)?flex\b", re.IGNORECASE)
DARK_MODE_QUERY_RE = re.compile(r"prefers-color-scheme\s*:\s*dark", re.IGNORECASE)
DARK_MEDIA_BLOCK_RE = re.compile(
    r"@media[^{]*prefers-color-scheme\s*:\s*dark[^{]*\{(?:[^{}]*\{[^{}]*\})*[^{}]*\}",
    re.IGNORECASE,
)
COLUMN_CLASS_RE = re.compile(r"^col(?:-(?:xs|sm|md|lg|xl|xxl))?(?:-\d{1,2}|-auto)?$")


def is_dark(color: str) -> bool:
    """True for an opaque color whose relative luminance is low."""
    if color.strip().lower() == "black":
        return True
    normalized = normalize_color(color)
    if not normalized or not normalized.startswith("#"):
        return False
    r, g, b = (int(normalized[i:i + 2], 16) for i in (1, 3, 5))
    return (0.2126 * r + 0.7152 * g + 0.0722 * b) / 255 < DARK_LUMINANCE


class VisualAnalyzer(Detector):
    """
    Classifies the page's visual presentation.

    Inspects stylesheet text for animations, effects and layout systems, and
    the element tree for graphics and dark-theme markers. Findings describe
    the page; a plain page still yields a complete section.
    """

    section = SectionName.VISUAL

    def analyze(self, context: DetectorContext) -> VisualSection:
        document = context.document
        css = COMMENT_RE.sub("", document.stylesheet_text)
        script_text = self._script_text(document)

        animations = [label for label, pattern in CSS_ANIMATIONS if pattern.search(css)]
        animations += [label for label, pattern in SCRIPT_ANIMATIONS if pattern.search(script_text)]
        effects = [label for label, pattern in EFFECTS if pattern.search(css)]
        context.checkpoint()

        section = VisualSection(
            animations=tuple(animations),
            effects=tuple(effects),
            background_type=self._background_type(css, document, script_text),
            graphics=tuple(self._graphics(document, css)),
        )
        context.commit(section)
        context.checkpoint()

        return section.model_copy(update={
            "color_scheme": "dark" if self._dark_scheme(css, document) else "light",
            "supports_dark_mode": self._supports_dark_mode(css, document),
            "layout": self._layout(css, document),
        })

    @staticmethod
    def _script_text(document: ParsedDocument) -> str:
        return "\n".join([*document.script_sources, *(s.inline for s in document.scripts if s.inline)])

    @staticmethod
    def _background_type(css: str, document: ParsedDocument, script_text: str) -> str:
        if GRADIENT_RE.search(css):
            return "gradient"
        if BACKGROUND_IMAGE_RE.search(css):
            return "image"
        if document.find("canvas") or WEBGL_RE.search(script_text):
            return "canvas"
        return "solid"

    @staticmethod
    def _graphics(document: ParsedDocument, css: str) -> list[str]:
        graphics = []
        if document.find("svg"):
            graphics.append("svg")
        if document.find("canvas"):
            graphics.append("canvas")
        if document.find("video"):
            graphics.append("video")
        if any(GIF_RE.search(src) for src in document.images) or GIF_RE.search(css):
            graphics.append("gif")
        modern_sources = document.find("source", attrs={"type": re.compile(r"image/(?:webp|avif)", re.IGNORECASE)})
        if modern_sources or any(MODERN_IMAGE_RE.search(src) for src in document.images):
            graphics.append("modern_image_formats")
        return graphics

    @staticmethod
    def _root_background(css: str, document: ParsedDocument) -> Optional[str]:
        """Last background color declared for the page root, inline style first."""
        for tag in ("body", "html"):
            element = document.find_first(tag)
            if element is not None:
                match = BACKGROUND_RE.search(element.get("style", ""))
                if match:
                    return match.group(1).strip()

        background = None
        for rule in RULE_RE.finditer(DARK_MEDIA_BLOCK_RE.sub("", css)):
            if ROOT_SELECTOR_RE.search(rule.group(1).strip()):
                for match in BACKGROUND_RE.finditer(rule.group(2)):
                    background = match.group(1).strip()
        return background

    def _dark_scheme(self, css: str, document: ParsedDocument) -> bool:
        for element in document.find(("html", "body")):
            if any(DARK_CLASS_RE.search(c) for c in element.classes):
                return True
            if "dark" in (element.get("data-theme", ""), element.get("data-bs-theme", "")):
                return True

        background = self._root_background(css, document)
        if not background:
            return False
        color = COLOR_RE.search(background)
        return is_dark(color.group(0) if color else background.split()[0])

    @staticmethod
    def _supports_dark_mode(css: str, document: ParsedDocument) -> bool:
        if DARK_MODE_QUERY_RE.search(css):
            return True
        color_scheme = document.meta_content(name="color-scheme") or ""
        return "dark" in color_scheme.lower()

    @staticmethod
    def _layout(css: str, document: ParsedDocument) -> str:
        if GRID_RE.search(css):
            return "grid"
        if FLEX_RE.search(css):
            return "flexbox"
        has_row = bool(document.find(class_="row"))
        has_column = any(COLUMN_CLASS_RE.match(c) for el in document.elements for c in el.classes)
        if has_row and has_column:
            return "framework_grid"
        return "standard"
