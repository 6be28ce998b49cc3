"""On-page SEO metadata and rule violations."""

from __future__ import annotations

from site_inspector.detectors.base import Detector, DetectorContext
from site_inspector.models.schemas import (
    HeadingEntry,
    SectionName,
    SeoSection,
    SeoViolation,
)
from site_inspector.services.markup_parser import ParsedDocument

TITLE_MAX_LENGTH = 60
DESCRIPTION_MAX_LENGTH = 160
HEADING_TEXT_LIMIT = 120


class SeoAnalyzer(Detector):
    """
    Extracts SEO metadata and reports rule violations.

    Violations are findings about the page, not detector errors; a page with
    no meta description still yields a complete section.
    """

    section = SectionName.SEO

    def analyze(self, context: DetectorContext) -> SeoSection:
        document = context.document

        keywords_meta = document.meta_content(name="keywords") or ""
        open_graph = {}
        for tag in document.meta:
            prop = tag.get("property", "").lower()
            if prop.startswith("og:") and tag.get("content"):
                open_graph.setdefault(prop[3:], tag["content"].strip())

        canonical = next(
            (link.href for link in document.links if "canonical" in link.rel),
            None,
        )
        description = (document.meta_content(name="description") or "").strip() or None

        headings = tuple(
            HeadingEntry(level=int(el.tag[1]), text=" ".join(el.text.split())[:HEADING_TEXT_LIMIT])
            for el in document.headings
        )
        context.checkpoint()

        section = SeoSection(
            title=document.title,
            description=description,
            canonical=canonical,
            open_graph=open_graph,
            keywords=tuple(k.strip() for k in keywords_meta.split(",") if k.strip()),
            meta_tag_count=len(document.meta),
            lang=document.lang,
            headings=headings,
        )
        context.commit(section)

        return section.model_copy(update={"violations": tuple(self.check(section, document))})

    @staticmethod
    def check(section: SeoSection, document: ParsedDocument) -> list[SeoViolation]:
        """Evaluate the rule set against extracted metadata."""
        violations = []

        if not section.title:
            violations.append(SeoViolation(code="missing_title", message="Page has no <title>", severity="error"))
        elif len(section.title) > TITLE_MAX_LENGTH:
            violations.append(SeoViolation(
                code="title_too_long",
                message=f"Title is {len(section.title)} characters (max {TITLE_MAX_LENGTH})",
            ))

        if not section.description:
            violations.append(SeoViolation(
                code="missing_description",
                message="Page has no meta description",
                severity="error",
            ))
        elif len(section.description) > DESCRIPTION_MAX_LENGTH:
            violations.append(SeoViolation(
                code="description_too_long",
                message=f"Meta description is {len(section.description)} characters (max {DESCRIPTION_MAX_LENGTH})",
            ))

        if not section.canonical:
            violations.append(SeoViolation(code="missing_canonical", message="No canonical link"))

        if not section.open_graph:
            violations.append(SeoViolation(code="missing_open_graph", message="No Open Graph tags"))

        levels = [h.level for h in section.headings]
        h1_count = levels.count(1)
        if h1_count == 0:
            violations.append(SeoViolation(code="missing_h1", message="Page has no <h1>", severity="error"))
        elif h1_count > 1:
            violations.append(SeoViolation(code="multiple_h1", message=f"Page has {h1_count} <h1> elements"))

        previous = 0
        for level in levels:
            if previous and level > previous + 1:
                violations.append(SeoViolation(
                    code="heading_skipped",
                    message=f"Heading level jumps from h{previous} to h{level}",
                ))
                break
            previous = level

        if not document.lang:
            violations.append(SeoViolation(code="missing_lang", message="<html> has no lang attribute"))

        return violations
