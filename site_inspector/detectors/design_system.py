"""
Design token extraction from stylesheet text.

Colors, font families, spacing values and responsive breakpoints are
extracted independently from the collected CSS (``<style>`` blocks,
``style`` attributes and any linked stylesheets). A sub-extraction that
raises leaves its field empty, records the error, and marks the section
partial; the other fields are unaffected.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import Callable, Iterator, Optional

from site_inspector.detectors.base import Detector, DetectorContext
from site_inspector.models.schemas import (
    DesignSection,
    SectionName,
    SectionStatus,
    SpacingValue,
)
from site_inspector.utils.logger import get_logger

logger = get_logger(__name__)

MAX_SPACING_VALUES = 12
ROOT_FONT_SIZE = 16

COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
BLOCK_RE = re.compile(r"\{([^{}]*)\}")
COLOR_RE = re.compile(r"(?<![\w-])#[0-9a-f]{3,8}\b|\brgba?\([^)]*\)", re.IGNORECASE)
MEDIA_RE = re.compile(r"@media([^{]*)\{", re.IGNORECASE)
WIDTH_RE = re.compile(
    r"(?:(?:min|max)-width\s*:|\bwidth\s*[<>]=?)\s*(\d*\.?\d+)(px|em|rem)\b",
    re.IGNORECASE,
)
LENGTH_RE = re.compile(r"^-?(?:\d+\.?\d*|\.\d+)(?:px|rem|em|%|vh|vw|ch)$|^0$", re.IGNORECASE)
FONT_SHORTHAND_RE = re.compile(r"(?:^|\s)\d*\.?\d+(?:px|pt|em|rem|%)(?:\s*/\s*\S+)?\s+(.+)$", re.IGNORECASE)

GENERIC_FONTS = frozenset({
    "serif", "sans-serif", "monospace", "cursive", "fantasy", "system-ui",
    "ui-serif", "ui-sans-serif", "ui-monospace", "ui-rounded", "emoji",
    "math", "fangsong", "-apple-system", "blinkmacsystemfont",
    "inherit", "initial", "unset", "revert", "revert-layer",
})

SPACING_PROPERTIES = frozenset({
    "margin", "margin-top", "margin-right", "margin-bottom", "margin-left",
    "margin-block", "margin-inline",
    "padding", "padding-top", "padding-right", "padding-bottom", "padding-left",
    "padding-block", "padding-inline",
    "gap", "row-gap", "column-gap", "grid-gap",
})


# =============================================================================
# CSS helpers
# =============================================================================

def iter_declarations(css: str) -> Iterator[tuple[str, str]]:
    """Yield ``(property, value)`` pairs from every innermost rule block."""
    css = COMMENT_RE.sub("", css)
    for block in BLOCK_RE.finditer(css):
        for declaration in block.group(1).split(";"):
            prop, sep, value = declaration.partition(":")
            if sep and prop.strip():
                value = re.sub(r"\s*!important\s*$", "", value.strip(), flags=re.IGNORECASE)
                yield prop.strip().lower(), value


def _channel(token: str) -> int:
    if token.endswith("%"):
        value = float(token[:-1]) * 2.55
    else:
        value = float(token)
    return max(0, min(255, round(value)))


def _alpha(token: str) -> float:
    if token.endswith("%"):
        value = float(token[:-1]) / 100
    else:
        value = float(token)
    return max(0.0, min(1.0, value))


def normalize_color(value: str) -> Optional[str]:
    """
    Canonical form of a CSS color literal.

    Opaque colors become lower-case ``#rrggbb``; translucent ones become
    ``rgba(r, g, b, a)``. Returns None for anything unparseable.

    Example:
        >>> normalize_color("rgba(255,170,255,1)")
        '#ffaaff'
    """
    value = value.strip().lower()

    if value.startswith("#"):
        digits = value[1:]
        if len(digits) in (3, 4):
            digits = "".join(c * 2 for c in digits)
        if len(digits) not in (6, 8):
            return None
        try:
            r, g, b = (int(digits[i:i + 2], 16) for i in (0, 2, 4))
            a = int(digits[6:8], 16) / 255 if len(digits) == 8 else 1.0
        except ValueError:
            return None
    else:
        match = re.match(r"rgba?\(([^)]*)\)", value)
        if not match:
            return None
        parts = [p for p in re.split(r"[\s,/]+", match.group(1).strip()) if p]
        if len(parts) not in (3, 4):
            return None
        try:
            r, g, b = (_channel(p) for p in parts[:3])
            a = _alpha(parts[3]) if len(parts) == 4 else 1.0
        except ValueError:
            return None

    if a >= 0.999:
        return f"#{r:02x}{g:02x}{b:02x}"
    return f"rgba({r}, {g}, {b}, {round(a, 3):g})"


def primary_font(prop: str, value: str) -> Optional[str]:
    """First non-generic family of a ``font-family`` or ``font`` declaration."""
    if prop == "font":
        match = FONT_SHORTHAND_RE.search(value)
        if not match:
            return None
        value = match.group(1)

    for family in value.split(","):
        family = family.strip().strip("\"'").strip()
        if not family or family.lower() in GENERIC_FONTS or family.lower().startswith("var("):
            continue
        return family
    return None


def breakpoint_px(amount: str, unit: str) -> int:
    px = float(amount)
    if unit.lower() in ("em", "rem"):
        px *= ROOT_FONT_SIZE
    return int(round(px))


# =============================================================================
# Detector
# =============================================================================

class DesignSystemExtractor(Detector):
    """Extracts colors, fonts, spacing and breakpoints from stylesheet text."""

    section = SectionName.DESIGN

    def analyze(self, context: DetectorContext) -> DesignSection:
        css = context.document.stylesheet_text
        declarations = list(iter_declarations(css))

        extractions: list[tuple[str, Callable]] = [
            ("colors", lambda: self.extract_colors(declarations, context)),
            ("fonts", lambda: self.extract_fonts(declarations, context)),
            ("spacing", lambda: self.extract_spacing(declarations, context)),
            ("breakpoints", lambda: self.extract_breakpoints(css, context)),
        ]

        fields: dict = {}
        errors: dict[str, str] = {}
        for name, extract in extractions:
            context.checkpoint()
            try:
                fields[name] = extract()
            except Exception as e:
                logger.warning("Design sub-extraction failed", field=name, error=str(e))
                errors[name] = f"{type(e).__name__}: {e}"
            context.commit(DesignSection(**fields, errors=dict(errors)))

        return DesignSection(**fields, errors=errors)

    def status_for(self, payload: DesignSection) -> SectionStatus:
        return SectionStatus.PARTIAL if payload.errors else SectionStatus.COMPLETE

    @staticmethod
    def extract_colors(declarations, context: DetectorContext) -> tuple[str, ...]:
        colors: dict[str, None] = {}
        for i, (_, value) in enumerate(declarations):
            if i % context.checkpoint_every == 0:
                context.checkpoint()
            for literal in COLOR_RE.findall(value):
                color = normalize_color(literal)
                if color:
                    colors.setdefault(color)
        return tuple(colors)

    @staticmethod
    def extract_fonts(declarations, context: DetectorContext) -> tuple[str, ...]:
        fonts: dict[str, str] = {}
        for i, (prop, value) in enumerate(declarations):
            if i % context.checkpoint_every == 0:
                context.checkpoint()
            if prop not in ("font-family", "font"):
                continue
            family = primary_font(prop, value)
            if family:
                fonts.setdefault(family.lower(), family)
        return tuple(fonts.values())

    @staticmethod
    def extract_spacing(declarations, context: DetectorContext) -> tuple[SpacingValue, ...]:
        counts: Counter[str] = Counter()
        for i, (prop, value) in enumerate(declarations):
            if i % context.checkpoint_every == 0:
                context.checkpoint()
            if prop not in SPACING_PROPERTIES:
                continue
            for token in value.lower().split():
                if LENGTH_RE.match(token):
                    counts[token] += 1
        return tuple(
            SpacingValue(value=value, count=count)
            for value, count in counts.most_common(MAX_SPACING_VALUES)
        )

    @staticmethod
    def extract_breakpoints(css: str, context: DetectorContext) -> tuple[int, ...]:
        breakpoints: set[int] = set()
        for media in MEDIA_RE.finditer(COMMENT_RE.sub("", css)):
            context.checkpoint()
            for amount, unit in WIDTH_RE.findall(media.group(1)):
                breakpoints.add(breakpoint_px(amount, unit))
        return tuple(sorted(breakpoints))
