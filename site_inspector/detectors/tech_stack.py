"""Technology stack detection from the signature table."""

from __future__ import annotations

from typing import Optional, Sequence

from site_inspector.detectors.base import Detector, DetectorContext
from site_inspector.detectors.signatures import SIGNATURES, Signature
from site_inspector.models.schemas import SectionName, TechnologyMatch, TechStackSection
from site_inspector.services.markup_parser import ParsedDocument
from site_inspector.utils.logger import get_logger

logger = get_logger(__name__)

MAX_ATTR_VALUE = 200
MAX_EVIDENCE = 80


def combine_confidence(weights: Sequence[float]) -> float:
    """
    Capped sum of distinct signal weights.

    Each signal contributes once; the total is capped at 1.0 and rounded to
    two decimals, so two weak signals outrank one but never exceed certainty.
    """
    return round(min(1.0, sum(weights)), 2)


def build_corpus(document: ParsedDocument, final_url: str) -> dict[str, str]:
    """Newline-joined text per evidence source."""
    attr_lines = []
    for el in document.elements:
        for name, value in el.attrs.items():
            value = value.replace("\n", " ")[:MAX_ATTR_VALUE]
            attr_lines.append(f'{name}="{value}"')

    return {
        "script": "\n".join(document.script_sources),
        "link": "\n".join(link.href for link in document.links),
        "inline": "\n".join(s.inline for s in document.scripts if s.inline),
        "html": document.markup,
        "meta": "\n".join(
            tag.get("content", "") for tag in document.meta
            if tag.get("name", "").lower() == "generator"
        ),
        "attr": "\n".join(attr_lines),
        "url": final_url,
    }


class TechStackDetector(Detector):
    """Matches the page against known technology signatures."""

    section = SectionName.TECH_STACK

    def __init__(self, signatures: Sequence[Signature] = SIGNATURES):
        self.signatures = tuple(signatures)

    def analyze(self, context: DetectorContext) -> TechStackSection:
        corpus = build_corpus(context.document, context.retrieval.final_url)
        matches: dict[str, TechnologyMatch] = {}

        for signature in self.signatures:
            context.checkpoint()
            match = self._match(signature, corpus)
            if match is None:
                continue
            existing = matches.get(match.name)
            if existing is None or match.confidence > existing.confidence:
                matches[match.name] = match
            context.commit(self._section(matches.values()))

        section = self._section(matches.values())
        logger.debug("Technologies detected", count=len(section.technologies))
        return section

    @staticmethod
    def _match(signature: Signature, corpus: dict[str, str]) -> Optional[TechnologyMatch]:
        weights: list[float] = []
        evidence: list[str] = []
        version: Optional[str] = None
        seen: set[str] = set()

        for pattern in signature.patterns:
            if pattern.key in seen:
                continue
            found = pattern.regex.search(corpus.get(pattern.source, ""))
            if not found:
                continue
            seen.add(pattern.key)
            weights.append(pattern.weight)
            evidence.append(f"{pattern.source}: {found.group(0)[:MAX_EVIDENCE]}")
            if version is None and "version" in pattern.regex.groupindex:
                version = found.group("version")

        if not weights:
            return None

        return TechnologyMatch(
            name=signature.name,
            category=signature.category,
            confidence=combine_confidence(weights),
            evidence=tuple(evidence),
            version=version,
        )

    @staticmethod
    def _section(matches) -> TechStackSection:
        ordered = sorted(matches, key=lambda t: (-t.confidence, t.name))
        return TechStackSection(technologies=tuple(ordered))
