from site_inspector.detectors.performance import (
    PerformanceProfiler,
    estimate_load_time,
    performance_score,
    performance_tier,
)
from site_inspector.models.schemas import PerformanceTier


class TestTier:
    def test_fast(self):
        assert performance_tier(200, 100 * 1024) == PerformanceTier.FAST

    def test_moderate_on_latency(self):
        assert performance_tier(1500, 100 * 1024) == PerformanceTier.MODERATE

    def test_moderate_on_weight(self):
        assert performance_tier(200, 800 * 1024) == PerformanceTier.MODERATE

    def test_slow_on_either(self):
        assert performance_tier(3000, 1024) == PerformanceTier.SLOW
        assert performance_tier(100, 2 * 1024 * 1024) == PerformanceTier.SLOW

    def test_boundaries(self):
        assert performance_tier(999, 500 * 1024 - 1) == PerformanceTier.FAST
        assert performance_tier(1000, 1024) == PerformanceTier.MODERATE


def test_estimate_load_time():
    assert estimate_load_time(0, 0) == 0.5
    assert estimate_load_time(1000, 20) == 2.5


class TestScore:
    def test_light_page(self):
        assert performance_score(0.6, 50, 5, False, False, False) == 100

    def test_penalties_stack(self):
        assert performance_score(3.5, 1500, 60, False, False, False) == 35

    def test_mid_penalties(self):
        assert performance_score(2.5, 600, 40, False, False, False) == 60

    def test_bonuses(self):
        assert performance_score(2.5, 600, 40, True, True, True) == 75

    def test_clamped(self):
        assert performance_score(0.5, 10, 1, True, True, True) == 100


def test_sample_profile(make_context):
    context = make_context(elapsed_ms=250)
    section = PerformanceProfiler().analyze(context)

    assert section.latency_ms == 250
    assert section.transfer_bytes == context.retrieval.content_bytes
    assert section.script_count == 2
    assert section.stylesheet_count == 1
    assert section.image_count == 3
    assert section.request_count == 10
    assert section.has_minified_css is True
    assert section.has_minified_js is True
    assert section.tier == PerformanceTier.FAST
    assert 0 <= section.score <= 100


def test_slow_retrieval_is_slow_tier(make_context):
    section = PerformanceProfiler().analyze(make_context(elapsed_ms=4200))
    assert section.tier == PerformanceTier.SLOW


def test_falls_back_to_document_size(make_context):
    context = make_context(content_bytes=0)
    section = PerformanceProfiler().analyze(context)
    assert section.transfer_bytes == context.document.size_bytes
    assert section.transfer_bytes > 0
