"""Load-performance profile from retrieval telemetry and document weight."""

from __future__ import annotations

from site_inspector.detectors.base import Detector, DetectorContext
from site_inspector.models.schemas import (
    PerformanceSection,
    PerformanceTier,
    SectionName,
)

FAST_LATENCY_MS = 1000
SLOW_LATENCY_MS = 3000
FAST_WEIGHT_BYTES = 500 * 1024
SLOW_WEIGHT_BYTES = 2 * 1024 * 1024


def performance_tier(latency_ms: int, weight_bytes: int) -> PerformanceTier:
    """Coarse tier from latency and page weight."""
    if latency_ms >= SLOW_LATENCY_MS or weight_bytes >= SLOW_WEIGHT_BYTES:
        return PerformanceTier.SLOW
    if latency_ms < FAST_LATENCY_MS and weight_bytes < FAST_WEIGHT_BYTES:
        return PerformanceTier.FAST
    return PerformanceTier.MODERATE


def estimate_load_time(size_kb: float, requests: int) -> float:
    """Seconds: a base cost plus size and per-request overhead."""
    return round(0.5 + size_kb / 1000 + requests * 0.05, 2)


def performance_score(
    load_time_s: float,
    size_kb: float,
    requests: int,
    has_minified_css: bool,
    has_minified_js: bool,
    has_compression: bool,
) -> int:
    """0-100 score penalizing slow, heavy and request-heavy pages."""
    score = 100
    if load_time_s > 3:
        score -= 30
    elif load_time_s > 2:
        score -= 20
    elif load_time_s > 1:
        score -= 10

    if size_kb > 1000:
        score -= 20
    elif size_kb > 500:
        score -= 10

    if requests > 50:
        score -= 15
    elif requests > 30:
        score -= 10

    score += 5 * sum((has_minified_css, has_minified_js, has_compression))
    return max(0, min(100, score))


class PerformanceProfiler(Detector):
    """Derives load metrics and a performance tier."""

    section = SectionName.PERFORMANCE

    def analyze(self, context: DetectorContext) -> PerformanceSection:
        document = context.document
        retrieval = context.retrieval

        transfer_bytes = retrieval.content_bytes or document.size_bytes
        size_kb = round(transfer_bytes / 1024, 1)

        script_count = len(document.script_sources)
        stylesheet_count = len(document.stylesheet_urls)
        image_count = len(document.images)
        request_count = len(document.scripts) + len(document.links) + image_count + 1

        has_minified_css = any(".min.css" in url for url in document.stylesheet_urls)
        has_minified_js = any(".min.js" in url for url in document.script_sources)
        has_compression = "gzip" in document.markup or "compress" in document.markup

        load_time = estimate_load_time(size_kb, request_count)
        context.checkpoint()

        return PerformanceSection(
            latency_ms=retrieval.elapsed_ms,
            transfer_bytes=transfer_bytes,
            size_kb=size_kb,
            script_count=script_count,
            stylesheet_count=stylesheet_count,
            image_count=image_count,
            request_count=request_count,
            has_minified_css=has_minified_css,
            has_minified_js=has_minified_js,
            estimated_load_time_s=load_time,
            score=performance_score(
                load_time, size_kb, request_count,
                has_minified_css, has_minified_js, has_compression,
            ),
            tier=performance_tier(retrieval.elapsed_ms, transfer_bytes),
        )
