"""Services module for Site Inspector."""

from site_inspector.services.markup_parser import (
    Element,
    LinkRef,
    MarkupParser,
    ParsedDocument,
    ScriptRef,
    parse,
)
from site_inspector.services.retriever import (
    DIRECT_STRATEGY,
    AttemptFailure,
    RetrievalError,
    Retriever,
)

__all__ = [
    "Retriever",
    "RetrievalError",
    "AttemptFailure",
    "DIRECT_STRATEGY",
    "MarkupParser",
    "ParsedDocument",
    "Element",
    "LinkRef",
    "ScriptRef",
    "parse",
]
