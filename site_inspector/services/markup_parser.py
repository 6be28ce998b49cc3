"""
Tolerant markup parsing into an immutable, queryable document.

BeautifulSoup's ``html.parser`` tree builder recovers from unterminated tags,
missing closing elements and undecodable bytes. The recovered tree is then
snapshotted into frozen ``Element`` records so detectors share a read-only
view and never touch the mutable soup.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Pattern, Union
from urllib.parse import urljoin

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.builder import ParserRejectedMarkup
from bs4.element import PreformattedString

from site_inspector.utils.logger import get_logger

logger = get_logger(__name__)

TEXT_LIMIT = 200
NON_TEXT_TAGS = frozenset({"script", "style", "noscript", "template", "head", "title", "meta", "link"})
HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")

AttrMatcher = Union[bool, str, Pattern[str]]


# =============================================================================
# Document Records
# =============================================================================

@dataclass(frozen=True, eq=False)
class Element:
    """Read-only snapshot of one element of the parsed tree."""
    tag: str
    attrs: Mapping[str, str]
    classes: tuple[str, ...]
    text: str
    depth: int
    index: int
    child_count: int = 0
    link_count: int = 0
    input_count: int = 0
    button_count: int = 0
    image_count: int = 0

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.attrs.get(name, default)

    def has_class(self, name: str) -> bool:
        return name in self.classes

    @property
    def id(self) -> str:
        return self.attrs.get("id", "")


@dataclass(frozen=True)
class ScriptRef:
    """A ``<script>`` element: resolved ``src`` or inline source."""
    src: Optional[str]
    inline: str = ""
    type: str = ""


@dataclass(frozen=True)
class LinkRef:
    """A ``<link>`` element with its ``href`` resolved to an absolute URL."""
    href: str
    rel: tuple[str, ...] = ()
    type: str = ""

    @property
    def is_stylesheet(self) -> bool:
        return "stylesheet" in self.rel


@dataclass(frozen=True, eq=False)
class ParsedDocument:
    """
    Immutable, read-only view of a parsed page.

    Shared by every detector of a run. All collections are tuples and all
    attribute maps are read-only proxies.
    """
    url: str
    markup: str = ""
    elements: tuple[Element, ...] = ()
    title: Optional[str] = None
    lang: Optional[str] = None
    meta: tuple[Mapping[str, str], ...] = ()
    scripts: tuple[ScriptRef, ...] = ()
    links: tuple[LinkRef, ...] = ()
    images: tuple[str, ...] = ()
    inline_styles: tuple[str, ...] = ()
    style_attributes: tuple[str, ...] = ()
    linked_stylesheets: tuple[str, ...] = ()
    size_bytes: int = 0
    recovered: bool = field(default=False, compare=False)

    # ------------------------------------------------------------------ queries

    def find(
        self,
        tag: Optional[Union[str, Iterable[str]]] = None,
        attrs: Optional[Mapping[str, AttrMatcher]] = None,
        class_: Optional[str] = None,
    ) -> list[Element]:
        """
        Query elements by tag, attribute and class.

        Attribute matchers: ``True`` requires presence, a string requires
        equality (case-insensitive), a compiled pattern must ``search``.
        """
        tags = {tag} if isinstance(tag, str) else set(tag) if tag else None
        return [
            el for el in self.elements
            if (tags is None or el.tag in tags)
            and (class_ is None or class_ in el.classes)
            and (not attrs or _attrs_match(el, attrs))
        ]

    def find_first(self, *args, **kwargs) -> Optional[Element]:
        found = self.find(*args, **kwargs)
        return found[0] if found else None

    def meta_content(self, name: Optional[str] = None, property: Optional[str] = None) -> Optional[str]:
        """Content of the first matching ``<meta name=...>`` or ``<meta property=...>``."""
        for tag in self.meta:
            if name and tag.get("name", "").lower() == name.lower():
                return tag.get("content")
            if property and tag.get("property", "").lower() == property.lower():
                return tag.get("content")
        return None

    @property
    def script_sources(self) -> list[str]:
        return [s.src for s in self.scripts if s.src]

    @property
    def stylesheet_urls(self) -> list[str]:
        return [link.href for link in self.links if link.is_stylesheet]

    @property
    def stylesheet_text(self) -> str:
        """Inline ``<style>`` blocks, ``style`` attributes and linked stylesheet text."""
        declarations = [f"{{{s}}}" for s in self.style_attributes]
        return "\n".join([*self.inline_styles, *self.linked_stylesheets, *declarations])

    @property
    def headings(self) -> list[Element]:
        return [el for el in self.elements if el.tag in HEADING_TAGS]

    def with_stylesheets(self, texts: Iterable[str]) -> "ParsedDocument":
        """Return a new document with additional linked stylesheet text."""
        extra = tuple(t for t in texts if t)
        if not extra:
            return self
        return replace(self, linked_stylesheets=self.linked_stylesheets + extra)


def _attrs_match(el: Element, attrs: Mapping[str, AttrMatcher]) -> bool:
    for name, matcher in attrs.items():
        value = el.attrs.get(name)
        if matcher is True:
            if value is None:
                return False
        elif matcher is False:
            if value is not None:
                return False
        elif isinstance(matcher, str):
            if value is None or value.lower() != matcher.lower():
                return False
        elif value is None or not matcher.search(value):
            return False
    return True


# =============================================================================
# Parser
# =============================================================================

class MarkupParser:
    """Converts raw content into a ``ParsedDocument``. Never raises on malformed input."""

    def __init__(self, features: str = "html.parser"):
        self.features = features

    def parse(self, raw: Union[str, bytes, None], base_url: str = "") -> ParsedDocument:
        """
        Parse raw markup into an immutable document.

        Args:
            raw: Markup as text or undecoded bytes (encoding is sniffed)
            base_url: URL the markup was served from, for resolving references

        Returns:
            ParsedDocument; an empty one if the markup is rejected outright
        """
        if raw is None:
            raw = ""
        size_bytes = len(raw) if isinstance(raw, bytes) else len(raw.encode("utf-8", errors="replace"))

        try:
            soup = BeautifulSoup(raw, self.features)
        except (ParserRejectedMarkup, AssertionError, ValueError, UnicodeError) as e:
            logger.warning("Markup rejected, degrading to empty document", url=base_url, error=str(e))
            markup = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
            return ParsedDocument(url=base_url, markup=markup, size_bytes=size_bytes, recovered=True)

        markup = raw.decode(soup.original_encoding or "utf-8", errors="replace") if isinstance(raw, bytes) else raw
        base = self._base_url(soup, base_url)

        document = ParsedDocument(
            url=base_url,
            markup=markup,
            elements=self._snapshot(soup),
            title=self._title(soup),
            lang=self._lang(soup),
            meta=tuple(
                MappingProxyType(_flatten_attrs(tag))
                for tag in soup.find_all("meta")
            ),
            scripts=tuple(self._scripts(soup, base)),
            links=tuple(self._links(soup, base)),
            images=tuple(
                urljoin(base, img["src"].strip())
                for img in soup.find_all("img")
                if isinstance(img.get("src"), str) and img["src"].strip()
            ),
            inline_styles=tuple(
                style.get_text() for style in soup.find_all("style") if style.get_text().strip()
            ),
            style_attributes=tuple(
                tag["style"] for tag in soup.find_all(style=True) if isinstance(tag["style"], str)
            ),
            size_bytes=size_bytes,
        )

        logger.debug(
            "Markup parsed",
            url=base_url,
            elements=len(document.elements),
            scripts=len(document.scripts),
            links=len(document.links),
        )
        return document

    # ------------------------------------------------------------------ helpers

    @staticmethod
    def _base_url(soup: BeautifulSoup, base_url: str) -> str:
        base = soup.find("base", href=True)
        if base and isinstance(base["href"], str):
            return urljoin(base_url, base["href"].strip())
        return base_url

    @staticmethod
    def _title(soup: BeautifulSoup) -> Optional[str]:
        title = soup.find("title")
        if not title:
            return None
        text = " ".join(title.get_text().split())
        return text or None

    @staticmethod
    def _lang(soup: BeautifulSoup) -> Optional[str]:
        html = soup.find("html")
        lang = html.get("lang") if html else None
        return lang.strip() if isinstance(lang, str) and lang.strip() else None

    @staticmethod
    def _scripts(soup: BeautifulSoup, base: str) -> Iterable[ScriptRef]:
        for tag in soup.find_all("script"):
            src = tag.get("src")
            script_type = tag.get("type") or ""
            if isinstance(src, str) and src.strip():
                yield ScriptRef(src=urljoin(base, src.strip()), type=script_type)
            else:
                yield ScriptRef(src=None, inline=tag.get_text(), type=script_type)

    @staticmethod
    def _links(soup: BeautifulSoup, base: str) -> Iterable[LinkRef]:
        for tag in soup.find_all("link"):
            href = tag.get("href")
            if not isinstance(href, str) or not href.strip():
                continue
            rel = tag.get("rel") or []
            if isinstance(rel, str):
                rel = rel.split()
            yield LinkRef(
                href=urljoin(base, href.strip()),
                rel=tuple(r.lower() for r in rel),
                type=tag.get("type") or "",
            )

    @staticmethod
    def _snapshot(soup: BeautifulSoup) -> tuple[Element, ...]:
        """
        Snapshot every tag in document order.

        Iterative so deeply nested (often malformed) markup cannot exhaust
        the recursion limit. Descendant counts and text are accumulated
        bottom-up by walking the pre-order list in reverse.
        """
        tags: list[Tag] = [node for node in soup.descendants if isinstance(node, Tag)]
        position = {id(tag): i for i, tag in enumerate(tags)}
        parents: list[int] = []
        depths: list[int] = []
        for tag in tags:
            parent = position.get(id(tag.parent), -1)
            parents.append(parent)
            depths.append(depths[parent] + 1 if parent >= 0 else 0)

        children = [0] * len(tags)
        links = [0] * len(tags)
        inputs = [0] * len(tags)
        buttons = [0] * len(tags)
        images = [0] * len(tags)
        texts = [""] * len(tags)

        for i in range(len(tags) - 1, -1, -1):
            tag = tags[i]
            name = tag.name.lower()
            if name not in NON_TEXT_TAGS:
                pieces = []
                for child in tag.children:
                    if isinstance(child, Tag):
                        piece = texts[position[id(child)]]
                    elif isinstance(child, NavigableString) and not isinstance(child, PreformattedString):
                        piece = str(child)
                    else:
                        continue
                    if piece:
                        pieces.append(piece)
                    if sum(len(p) for p in pieces) > TEXT_LIMIT:
                        break
                texts[i] = " ".join(" ".join(pieces).split())[:TEXT_LIMIT]

            parent = parents[i]
            if parent < 0:
                continue
            children[parent] += 1
            links[parent] += links[i] + (name == "a")
            inputs[parent] += inputs[i] + (name in ("input", "textarea", "select"))
            buttons[parent] += buttons[i] + (name == "button")
            images[parent] += images[i] + (name == "img")

        elements = []
        for i, tag in enumerate(tags):
            attrs = _flatten_attrs(tag)
            elements.append(Element(
                tag=tag.name.lower(),
                attrs=MappingProxyType(attrs),
                classes=tuple(attrs.get("class", "").split()),
                text=texts[i],
                depth=depths[i],
                index=i,
                child_count=children[i],
                link_count=links[i],
                input_count=inputs[i],
                button_count=buttons[i],
                image_count=images[i],
            ))
        return tuple(elements)


def _flatten_attrs(tag: Tag) -> dict[str, str]:
    """Attribute dict with multi-valued attributes joined by spaces."""
    flat = {}
    for name, value in (tag.attrs or {}).items():
        if isinstance(value, (list, tuple)):
            value = " ".join(str(v) for v in value)
        flat[str(name).lower()] = "" if value is None else str(value)
    return flat


def parse(raw: Union[str, bytes, None], base_url: str = "") -> ParsedDocument:
    """Convenience wrapper around ``MarkupParser().parse``."""
    return MarkupParser().parse(raw, base_url)
