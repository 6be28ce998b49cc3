import pytest
import httpx

from site_inspector.config.settings import Settings, get_settings
from site_inspector.detectors.base import DetectorContext
from site_inspector.models.schemas import AnalysisOptions, RelayEndpoint, RetrievalResult
from site_inspector.services.markup_parser import parse

SAMPLE_URL = "https://example.com/"

SAMPLE_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>Example Shop - Handmade Goods</title>
  <meta name="description" content="Handmade goods shipped worldwide.">
  <meta name="keywords" content="handmade, goods, shop">
  <meta name="generator" content="WordPress 6.4.2">
  <meta property="og:title" content="Example Shop">
  <meta property="og:image" content="https://example.com/og.png">
  <link rel="canonical" href="https://example.com/">
  <link rel="stylesheet" href="/wp-content/themes/shop/bootstrap.min.css">
  <link rel="icon" href="/favicon.ico">
  <script src="https://code.jquery.com/jquery-3.6.0.min.js"></script>
  <script src="https://www.googletagmanager.com/gtag/js?id=G-TEST"></script>
  <script>gtag('config', 'G-TEST');</script>
  <style>
    /* brand palette */
    body { font-family: "Inter", Helvetica, sans-serif; color: #333; margin: 0; }
    .hero { background: #FFAAFF; padding: 16px 24px; }
    .card { border-color: #ffaaff; padding: 16px; margin: 8px; }
    .btn { background-color: rgba(255,170,255,1); padding: 8px 16px; gap: 8px; }
    .overlay { background: rgba(0, 0, 0, 0.5); }
    h1 { font: bold 32px/1.2 Georgia, serif; }
    @media (min-width: 768px) { .card { padding: 24px; } }
    @media (max-width: 64em) { .hero { padding: 16px; } }
  </style>
</head>
<body>
  <header class="site-header">
    <img src="/logo.png" alt="Example">
    <nav aria-label="Main">
      <a href="/">Home</a><a href="/shop">Shop</a><a href="/about">About</a>
    </nav>
  </header>
  <main>
    <section class="hero">
      <h1>Handmade goods</h1>
      <button class="btn">Shop now</button>
    </section>
    <div class="card"><h2>Mugs</h2><img src="/mug.jpg"><a href="/mugs">View</a></div>
    <div class="card"><h2>Bowls</h2><img src="/bowl.jpg"><a href="/bowls">View</a></div>
    <form action="/subscribe">
      <input type="email" name="email" required>
      <button type="submit">Subscribe</button>
    </form>
    <h3>Latest news</h3>
  </main>
  <footer style="color: #222222; padding: 32px">Example Shop</footer>
</body>
</html>
"""

FAKE_RELAYS = (
    RelayEndpoint(name="relay-a", base_url="https://relay-a.test/get", response_format="json", json_field="contents"),
    RelayEndpoint(name="relay-b", base_url="https://relay-b.test/"),
    RelayEndpoint(name="relay-c", base_url="https://relay-c.test/proxy", param="quest"),
)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Keep cached settings from leaking between tests."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings():
    """Fast settings: short timeouts, no backoff, fake relays."""
    return Settings(
        request_timeout_seconds=1.0,
        retrieval_budget_seconds=5.0,
        relay_backoff_seconds=0.0,
        pipeline_timeout_seconds=5.0,
        relay_endpoints=FAKE_RELAYS,
        log_json=False,
    )


@pytest.fixture
def sample_html():
    return SAMPLE_HTML


@pytest.fixture
def make_retrieval():
    """Factory for RetrievalResult with sensible defaults."""
    def _make(body: str = SAMPLE_HTML, **overrides) -> RetrievalResult:
        fields = {
            "final_url": SAMPLE_URL,
            "body": body,
            "strategy_used": "direct",
            "http_status": 200,
            "elapsed_ms": 250,
            "content_bytes": len(body.encode("utf-8")),
            "content_type": "text/html; charset=utf-8",
        }
        fields.update(overrides)
        return RetrievalResult(**fields)
    return _make


@pytest.fixture
def make_context(settings, make_retrieval):
    """Factory for a DetectorContext over parsed markup."""
    def _make(html: str = SAMPLE_HTML, options: AnalysisOptions | None = None, **retrieval_overrides) -> DetectorContext:
        retrieval = make_retrieval(html, **retrieval_overrides)
        return DetectorContext(
            document=parse(html, retrieval.final_url),
            retrieval=retrieval,
            settings=settings,
            options=options or AnalysisOptions(),
        )
    return _make


@pytest.fixture
def site_transport():
    """
    Factory for an httpx.MockTransport.

    ``routes`` maps a host to a response, a callable(request) -> response, or
    an httpx exception class to raise. Unknown hosts fail to connect. Every
    request is recorded on ``transport.requests``.
    """
    def _make(routes: dict) -> httpx.MockTransport:
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            route = routes.get(request.url.host)
            if route is None:
                raise httpx.ConnectError("Name or service not known", request=request)
            if isinstance(route, type) and issubclass(route, Exception):
                raise route(route.__name__, request=request)
            if callable(route):
                return route(request)
            return route

        transport = httpx.MockTransport(handler)
        transport.requests = requests
        return transport
    return _make
