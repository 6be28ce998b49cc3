"""
UI component inventory.

Elements are walked in document order and assigned a role from, in order of
precedence, their ARIA ``role``, their semantic tag, or a class/id keyword.
Occurrences sharing a role and normalized label merge into one entry.
"""

from __future__ import annotations

import re
from typing import Optional

from site_inspector.detectors.base import Detector, DetectorContext
from site_inspector.models.schemas import (
    Complexity,
    ComponentEntry,
    ComponentsSection,
    SectionName,
)
from site_inspector.services.markup_parser import Element
from site_inspector.utils.logger import get_logger

logger = get_logger(__name__)

LABEL_LIMIT = 60

ARIA_ROLES = {
    "navigation": "navigation",
    "menubar": "navigation",
    "banner": "header",
    "contentinfo": "footer",
    "button": "button",
    "form": "form",
    "search": "search",
    "dialog": "modal",
    "alertdialog": "modal",
    "complementary": "sidebar",
    "table": "table",
    "grid": "table",
    "tablist": "tabs",
    "main": "content",
}

SEMANTIC_TAGS = {
    "nav": "navigation",
    "header": "header",
    "footer": "footer",
    "button": "button",
    "form": "form",
    "dialog": "modal",
    "aside": "sidebar",
    "table": "table",
    "main": "content",
    "details": "accordion",
}

CLASS_KEYWORDS = {
    "navigation": ("nav", "navbar", "navigation", "menu"),
    "header": ("header", "masthead"),
    "footer": ("footer",),
    "hero": ("hero", "banner", "jumbotron", "hero-section"),
    "card": ("card", "tile"),
    "button": ("btn", "button"),
    "form": ("form",),
    "modal": ("modal", "dialog", "popup", "overlay"),
    "sidebar": ("sidebar",),
    "table": ("table",),
    "gallery": ("gallery", "carousel", "slider"),
    "search": ("search", "searchbox"),
    "content": ("content",),
    "breadcrumb": ("breadcrumb", "breadcrumbs"),
    "pagination": ("pagination", "pager"),
    "tabs": ("tabs", "tablist"),
    "accordion": ("accordion",),
}

_COMPLEXITY_RANK = {Complexity.SIMPLE: 0, Complexity.MODERATE: 1, Complexity.COMPLEX: 2}


def _keyword_matches(token: str, keyword: str) -> bool:
    return token == keyword or token.endswith(f"-{keyword}") or token.endswith(f"_{keyword}")


def normalize_label(value: str) -> str:
    return " ".join(value.lower().split())[:LABEL_LIMIT]


def _tier(value: int, moderate: int, complex_: int) -> Complexity:
    if value > complex_:
        return Complexity.COMPLEX
    if value > moderate:
        return Complexity.MODERATE
    return Complexity.SIMPLE


class ComponentClassifier(Detector):
    """Builds a deduplicated, capped inventory of UI components."""

    section = SectionName.COMPONENTS

    def analyze(self, context: DetectorContext) -> ComponentsSection:
        cap = context.max_components
        entries: dict[tuple[str, str], ComponentEntry] = {}

        for i, el in enumerate(context.document.elements):
            if i % context.checkpoint_every == 0:
                context.checkpoint()
                context.commit(self._section(entries, cap))

            role = self.classify(el)
            if role is None:
                continue

            entry = self.describe(el, role)
            key = (role, entry.label)
            existing = entries.get(key)
            entries[key] = entry if existing is None else self._merge(existing, entry)

        section = self._section(entries, cap)
        logger.debug(
            "Components classified",
            distinct=section.total_detected,
            kept=len(section.items),
            truncated=section.truncated,
        )
        return section

    # ------------------------------------------------------------------ roles

    @staticmethod
    def classify(el: Element) -> Optional[str]:
        """Role of an element, or None when it is not a recognised component."""
        aria = (el.get("role") or "").strip().lower()
        if aria in ARIA_ROLES:
            return ARIA_ROLES[aria]

        if el.tag in SEMANTIC_TAGS:
            return SEMANTIC_TAGS[el.tag]

        if el.tag == "input":
            input_type = (el.get("type") or "").lower()
            if input_type == "search":
                return "search"
            if input_type in ("submit", "button"):
                return "button"

        tokens = [c.lower() for c in el.classes]
        if el.id:
            tokens.append(el.id.lower())
        for role, keywords in CLASS_KEYWORDS.items():
            if any(_keyword_matches(token, kw) for token in tokens for kw in keywords):
                return role
        return None

    @staticmethod
    def label_for(el: Element) -> str:
        for source in (el.get("aria-label"), el.get("title"), el.id, el.text, el.get("value")):
            if source and source.strip():
                return normalize_label(source)
        return ""

    def describe(self, el: Element, role: str) -> ComponentEntry:
        """Props, child count and complexity for one occurrence."""
        props: list[str] = []
        children = el.child_count
        complexity = _tier(el.child_count, 8, 20)

        if role == "header":
            if el.image_count:
                props.append("logo")
            if el.link_count:
                props.append("navigation")
            children = el.link_count
            complexity = _tier(el.link_count, 5, 10)
        elif role == "navigation":
            if "mobile" in el.classes:
                props.append("mobile-responsive")
            if el.button_count:
                props.append("toggle")
            children = el.link_count
            complexity = _tier(el.link_count, 8, 15)
        elif role == "hero":
            if el.button_count or el.link_count:
                props.append("call-to-action")
            if el.image_count:
                props.append("background-image")
            children = el.button_count
            complexity = Complexity.MODERATE if el.image_count else Complexity.SIMPLE
        elif role == "card":
            if el.image_count:
                props.append("image")
            if el.button_count or el.link_count:
                props.append("action-button")
        elif role == "form":
            if el.button_count:
                props.append("submit-action")
            if el.input_count:
                props.append("inputs")
            children = el.input_count
            complexity = _tier(el.input_count, 8, 15)
        elif role == "search" and el.input_count:
            props.append("input")

        return ComponentEntry(
            role=role,
            tag=el.tag,
            label=self.label_for(el),
            children=children,
            props=tuple(props),
            complexity=complexity,
        )

    @staticmethod
    def _merge(existing: ComponentEntry, entry: ComponentEntry) -> ComponentEntry:
        props = tuple(dict.fromkeys(existing.props + entry.props))
        complexity = max(
            (Complexity(existing.complexity), Complexity(entry.complexity)),
            key=_COMPLEXITY_RANK.__getitem__,
        )
        return existing.model_copy(update={
            "count": existing.count + 1,
            "children": max(existing.children, entry.children),
            "props": props,
            "complexity": complexity.value,
        })

    @staticmethod
    def _section(entries: dict, cap: int) -> ComponentsSection:
        items = tuple(entries.values())
        return ComponentsSection(
            items=items[:cap],
            truncated=len(items) > cap,
            total_detected=len(items),
        )
