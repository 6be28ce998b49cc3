"""Embedded data blocks, inline code and third-party code references."""

from __future__ import annotations

import json
import re
from typing import Any, Iterable, Optional
from urllib.parse import urlsplit

from site_inspector.detectors.base import Detector, DetectorContext
from site_inspector.models.schemas import CodeSection, SectionName, StructuredDataBlock
from site_inspector.services.markup_parser import ParsedDocument
from site_inspector.utils.logger import get_logger

logger = get_logger(__name__)

MAX_DATA_BLOCKS = 5
MAX_INLINE_SCRIPTS = 3
MAX_LIBRARIES = 15
MAX_ENDPOINTS = 10
MIN_INLINE_SCRIPT_LENGTH = 50
INLINE_SCRIPT_PREVIEW = 200

DATA_SCRIPT_TYPES = frozenset({"application/json", "application/ld+json"})

CDN_HOST_RE = re.compile(r"cdn|unpkg|jsdelivr|code\.jquery\.com|ajax\.googleapis\.com", re.IGNORECASE)
LIBRARY_NAME_SPLIT_RE = re.compile(r"[.@]|-\d")
ENDPOINT_RE = re.compile(
    r"""['"](/api/[^'"\s]+|https?://[^'"\s]*api[^'"\s]*)['"]|fetch\(\s*['"]([^'"]+)['"]""",
    re.IGNORECASE,
)

REACT_SCRIPT_RE = re.compile(r"\bReact\.createElement\b|\bReactDOM\b|__NEXT_DATA__|__REACT_DEVTOOLS")
REACT_SOURCE_RE = re.compile(r"/react(?:-dom)?(?:[.@/-]|$)", re.IGNORECASE)
REACT_ATTRIBUTES = frozenset({"data-reactroot", "data-reactid"})
VUE_SCRIPT_RE = re.compile(r"\bnew Vue\(|\bVue\.createApp\(|\bcreateApp\(")
VUE_SOURCE_RE = re.compile(r"/vue(?:\.global|\.runtime)?(?:[.@/-]|$)", re.IGNORECASE)
VUE_ATTRIBUTE_RE = re.compile(r"^(?:v-[a-z]|@[a-z]|data-v-)")

CONFIG_HINTS = (
    ("build", re.compile(r"\b(?:webpack|vite|next)\.config\b", re.IGNORECASE)),
    ("package", re.compile(r"\b(?:package|composer)\.json\b", re.IGNORECASE)),
    ("environment", re.compile(r"(?<![\w.])\.env\b|\b(?:config|settings)\.js\b", re.IGNORECASE)),
)


def library_name(src: str) -> str:
    """
    Library name from a CDN script URL.

    Example:
        >>> library_name("https://code.jquery.com/jquery-3.6.0.min.js")
        'jquery'
    """
    path = urlsplit(src).path.rstrip("/")
    segment = path.rsplit("/", 1)[-1]
    return LIBRARY_NAME_SPLIT_RE.split(segment, 1)[0] or src


def _schema_types(data: Any) -> list[str]:
    """``@type`` values of a JSON-LD object, its ``@graph`` and list members."""
    items = data if isinstance(data, list) else [data]
    types: list[str] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        declared = item.get("@type")
        for value in declared if isinstance(declared, list) else [declared]:
            if isinstance(value, str) and value not in types:
                types.append(value)
        graph = item.get("@graph")
        if isinstance(graph, list):
            types.extend(t for t in _schema_types(graph) if t not in types)
    return types


def _unique(values: Iterable[str], limit: int) -> tuple[str, ...]:
    seen: list[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
            if len(seen) == limit:
                break
    return tuple(seen)


class CodeExtractor(Detector):
    """
    Extracts embedded data and code references from the page.

    Collects JSON and JSON-LD data blocks, previews of substantial inline
    scripts, CDN-hosted libraries, API endpoints referenced from script
    text and hints of build or environment configuration.
    """

    section = SectionName.CODE

    def analyze(self, context: DetectorContext) -> CodeSection:
        document = context.document

        blocks = []
        for script in document.scripts:
            if len(blocks) == MAX_DATA_BLOCKS:
                break
            if script.src is None and script.type.strip().lower() in DATA_SCRIPT_TYPES:
                block = self._data_block(script.type.strip().lower(), script.inline, document.url)
                if block is not None:
                    blocks.append(block)
        context.checkpoint()

        code_scripts = [
            s.inline.strip() for s in document.scripts
            if s.src is None and s.type.strip().lower() not in DATA_SCRIPT_TYPES
        ]
        previews = [
            text if len(text) <= INLINE_SCRIPT_PREVIEW else text[:INLINE_SCRIPT_PREVIEW] + "..."
            for text in code_scripts
            if len(text) > MIN_INLINE_SCRIPT_LENGTH
        ]
        libraries = _unique(
            (library_name(src) for src in document.script_sources if CDN_HOST_RE.search(urlsplit(src).netloc)),
            MAX_LIBRARIES,
        )

        section = CodeSection(
            structured_data=tuple(blocks),
            inline_scripts=tuple(previews[:MAX_INLINE_SCRIPTS]),
            external_libraries=libraries,
        )
        context.commit(section)
        context.checkpoint()

        script_text = "\n".join(code_scripts)
        endpoints = _unique(
            (match.group(1) or match.group(2) for match in ENDPOINT_RE.finditer(script_text)),
            MAX_ENDPOINTS,
        )

        return section.model_copy(update={
            "api_endpoints": endpoints,
            "config_hints": tuple(label for label, pattern in CONFIG_HINTS if pattern.search(document.markup)),
            "component_frameworks": tuple(self._frameworks(document, script_text)),
        })

    @staticmethod
    def _data_block(script_type: str, text: str, url: str) -> Optional[StructuredDataBlock]:
        try:
            data = json.loads(text)
        except ValueError as e:
            logger.debug("Skipping unparseable data block", url=url, error=str(e))
            return None

        return StructuredDataBlock(
            script_type=script_type,
            schema_types=tuple(_schema_types(data)),
            keys=tuple(str(k) for k in data) if isinstance(data, dict) else (),
            size_bytes=len(text.encode("utf-8", errors="replace")),
        )

    @staticmethod
    def _frameworks(document: ParsedDocument, script_text: str) -> list[str]:
        sources = document.script_sources
        attribute_names = {name for el in document.elements for name in el.attrs}

        frameworks = []
        if (
            attribute_names & REACT_ATTRIBUTES
            or document.find_first(attrs={"id": "__next"})
            or REACT_SCRIPT_RE.search(script_text)
            or any(REACT_SOURCE_RE.search(urlsplit(src).path) for src in sources)
        ):
            frameworks.append("React")
        if (
            any(VUE_ATTRIBUTE_RE.match(name) for name in attribute_names)
            or VUE_SCRIPT_RE.search(script_text)
            or any(VUE_SOURCE_RE.search(urlsplit(src).path) for src in sources)
        ):
            frameworks.append("Vue")
        return frameworks
