"""
Technology signature table.

Each signature names a technology, its category, and the patterns that
indicate it. A pattern is matched against one evidence source of the page:

    script  - resolved ``<script src>`` URLs
    link    - resolved ``<link href>`` URLs
    inline  - inline ``<script>`` source
    html    - the raw markup
    meta    - ``<meta name="generator">`` content
    attr    - ``name="value"`` pairs of every element attribute
    url     - the final page URL

Weights are per-pattern contributions to the capped-sum confidence. A named
``version`` group in a script/link pattern captures the library version.
"""

import re
from dataclasses import dataclass
from typing import Literal, Pattern as RegexPattern

Source = Literal["script", "link", "inline", "html", "meta", "attr", "url"]

# Categories
FRONTEND = "frontend"
CSS = "css"
BUILD = "build"
BACKEND = "backend"
ANALYTICS = "analytics"
HOSTING = "hosting"
DATABASE = "database"

CATEGORIES = (FRONTEND, CSS, BUILD, BACKEND, ANALYTICS, HOSTING, DATABASE)

VERSION = r"(?:[@/_.-]v?(?P<version>\d+(?:\.\d+){1,2}))?"


@dataclass(frozen=True)
class SignaturePattern:
    source: Source
    regex: RegexPattern[str]
    weight: float

    @property
    def key(self) -> str:
        return f"{self.source}:{self.regex.pattern}"


@dataclass(frozen=True)
class Signature:
    name: str
    category: str
    patterns: tuple[SignaturePattern, ...]


def _p(source: Source, regex: str, weight: float) -> SignaturePattern:
    return SignaturePattern(source, re.compile(regex, re.IGNORECASE | re.MULTILINE), weight)


def _sig(name: str, category: str, *patterns: SignaturePattern) -> Signature:
    return Signature(name, category, tuple(patterns))


SIGNATURES: tuple[Signature, ...] = (
    # Frontend frameworks and libraries
    _sig("React", FRONTEND,
         _p("script", rf"react(?:-dom)?{VERSION}(?:\.production|\.development)?(?:\.min)?\.js", 0.6),
         _p("attr", r'^data-reactroot=|^data-reactid=', 0.6),
         _p("inline", r"__REACT_DEVTOOLS_GLOBAL_HOOK__|React\.createElement", 0.4),
         _p("attr", r'^id="root"$', 0.2)),
    _sig("Vue.js", FRONTEND,
         _p("script", rf"vue{VERSION}(?:\.runtime)?(?:\.global)?(?:\.prod)?(?:\.min)?\.js", 0.6),
         _p("attr", r"^data-v-[0-9a-f]{6,}=", 0.6),
         _p("attr", r"^v-(?:if|for|bind|on|model)=", 0.4),
         _p("inline", r"\bnew Vue\(|createApp\(", 0.3)),
    _sig("Angular", FRONTEND,
         _p("attr", r"^ng-version=", 0.8),
         _p("attr", r"^(?:ng|data-ng)-(?:app|controller|model)=", 0.6),
         _p("script", rf"angular{VERSION}(?:\.min)?\.js", 0.6),
         _p("attr", r"^_ngcontent-", 0.5)),
    _sig("Next.js", FRONTEND,
         _p("attr", r'^id="__next"$', 0.5),
         _p("html", r'id="__NEXT_DATA__"', 0.7),
         _p("script", r"/_next/static/", 0.6)),
    _sig("Nuxt.js", FRONTEND,
         _p("attr", r'^id="__nuxt"$', 0.5),
         _p("inline", r"window\.__NUXT__", 0.7),
         _p("script", r"/_nuxt/", 0.6)),
    _sig("Svelte", FRONTEND,
         _p("attr", r'^class="[^"]*\bsvelte-[a-z0-9]{5,}', 0.7),
         _p("script", r"svelte", 0.4)),
    _sig("Gatsby", FRONTEND,
         _p("attr", r'^id="___gatsby"$', 0.8),
         _p("meta", r"^Gatsby", 0.6)),
    _sig("jQuery", FRONTEND,
         _p("script", rf"jquery{VERSION}(?:\.slim)?(?:\.min)?\.js", 0.8),
         _p("inline", r"\bjQuery\(|\$\(document\)\.ready", 0.4)),
    _sig("Alpine.js", FRONTEND,
         _p("attr", r"^x-data=", 0.6),
         _p("script", rf"alpinejs{VERSION}", 0.6)),

    # CSS frameworks
    _sig("Tailwind CSS", CSS,
         _p("link", r"tailwind(?:css)?", 0.7),
         _p("script", r"cdn\.tailwindcss\.com", 0.8),
         _p("attr", r'^class="[^"]*\b(?:(?:sm|md|lg|xl):)?(?:px|py|mx|my)-\d+\b[^"]*\b(?:text|bg)-[a-z]+-\d{2,3}\b', 0.5)),
    _sig("Bootstrap", CSS,
         _p("link", rf"bootstrap{VERSION}(?:\.min)?\.css", 0.8),
         _p("script", rf"bootstrap{VERSION}(?:\.bundle)?(?:\.min)?\.js", 0.7),
         _p("attr", r'^class="[^"]*\b(?:col-(?:sm|md|lg|xl)-\d+|navbar-expand-(?:sm|md|lg|xl))\b', 0.4)),
    _sig("Bulma", CSS,
         _p("link", rf"bulma{VERSION}(?:\.min)?\.css", 0.8),
         _p("attr", r'^class="[^"]*\bis-(?:primary|fullheight)\b[^"]*"', 0.2)),
    _sig("Foundation", CSS,
         _p("link", rf"foundation{VERSION}(?:\.min)?\.css", 0.8),
         _p("script", rf"foundation{VERSION}(?:\.min)?\.js", 0.7)),
    _sig("Materialize", CSS,
         _p("link", rf"materialize{VERSION}(?:\.min)?\.css", 0.8),
         _p("script", rf"materialize{VERSION}(?:\.min)?\.js", 0.7)),
    _sig("Font Awesome", CSS,
         _p("link", r"font-?awesome|fontawesome", 0.8),
         _p("script", r"kit\.fontawesome\.com", 0.8)),

    # Build tools and bundlers
    _sig("Webpack", BUILD,
         _p("inline", r"webpackJsonp|__webpack_require__|webpackChunk", 0.8),
         _p("script", r"webpack", 0.4)),
    _sig("Vite", BUILD,
         _p("script", r"/@vite/client|/assets/index-[A-Za-z0-9_-]{8}\.js", 0.6),
         _p("html", r'type="module"[^>]*crossorigin', 0.2)),
    _sig("Parcel", BUILD,
         _p("inline", r"parcelRequire", 0.8)),

    # Backend platforms and CMS
    _sig("WordPress", BACKEND,
         _p("meta", r"^WordPress", 0.9),
         _p("link", r"/wp-content/|/wp-includes/", 0.7),
         _p("script", r"/wp-content/|/wp-includes/", 0.7)),
    _sig("Drupal", BACKEND,
         _p("meta", r"^Drupal", 0.9),
         _p("inline", r"drupalSettings|Drupal\.settings", 0.7),
         _p("script", r"/sites/all/|/core/misc/drupal\.js", 0.6)),
    _sig("Joomla", BACKEND,
         _p("meta", r"^Joomla", 0.9),
         _p("script", r"/media/jui/", 0.6)),
    _sig("Shopify", BACKEND,
         _p("meta", r"Shopify", 0.9),
         _p("script", r"cdn\.shopify\.com", 0.8),
         _p("inline", r"Shopify\.shop", 0.6)),
    _sig("Squarespace", BACKEND,
         _p("meta", r"Squarespace", 0.9),
         _p("script", r"static\d*\.squarespace\.com", 0.8)),
    _sig("Wix", BACKEND,
         _p("meta", r"^Wix", 0.9),
         _p("script", r"static\.parastorage\.com|wixstatic\.com", 0.8)),
    _sig("PHP", BACKEND,
         _p("url", r"\.php(?:$|\?)", 0.6),
         _p("link", r"\.php(?:$|\?)", 0.4),
         _p("attr", r'^(?:href|action)="[^"]*\.php(?:"|\?)', 0.4)),
    _sig("ASP.NET", BACKEND,
         _p("attr", r'^(?:id|name)="__VIEWSTATE"', 0.9),
         _p("url", r"\.aspx?(?:$|\?)", 0.6)),
    _sig("Django", BACKEND,
         _p("attr", r'^name="csrfmiddlewaretoken"', 0.7)),
    _sig("Laravel", BACKEND,
         _p("html", r"laravel_session|XSRF-TOKEN", 0.5),
         _p("inline", r"window\.Laravel", 0.7)),
    _sig("Ruby on Rails", BACKEND,
         _p("attr", r'^name="authenticity_token"', 0.5),
         _p("meta", r"^Ruby on Rails", 0.9),
         _p("attr", r'^data-turbo(?:links)?-track=', 0.5)),

    # Analytics and tracking
    _sig("Google Analytics", ANALYTICS,
         _p("script", r"google-analytics\.com/(?:ga|analytics)\.js|googletagmanager\.com/gtag/js", 0.9),
         _p("inline", r"\bgtag\(\s*['\"]config['\"]|\bga\(\s*['\"]create['\"]", 0.6)),
    _sig("Google Tag Manager", ANALYTICS,
         _p("script", r"googletagmanager\.com/gtm\.js", 0.9),
         _p("inline", r"GTM-[A-Z0-9]{4,}", 0.6),
         _p("html", r"googletagmanager\.com/ns\.html", 0.6)),
    _sig("Facebook Pixel", ANALYTICS,
         _p("script", r"connect\.facebook\.net/[^\"']*/fbevents\.js", 0.9),
         _p("inline", r"fbq\(\s*['\"]init['\"]|fbevents\.js", 0.7)),
    _sig("Hotjar", ANALYTICS,
         _p("script", r"static\.hotjar\.com", 0.9),
         _p("inline", r"hotjar|_hjSettings", 0.7)),
    _sig("Mixpanel", ANALYTICS,
         _p("script", r"cdn\.mxpnl\.com|mixpanel", 0.8),
         _p("inline", r"mixpanel\.init", 0.7)),

    # Hosting and CDN
    _sig("Vercel", HOSTING,
         _p("url", r"\.vercel\.app", 0.9),
         _p("script", r"/_vercel/", 0.7)),
    _sig("Netlify", HOSTING,
         _p("url", r"\.netlify\.app", 0.9),
         _p("html", r"netlify", 0.3)),
    _sig("GitHub Pages", HOSTING,
         _p("url", r"\.github\.io", 0.9)),
    _sig("Cloudflare", HOSTING,
         _p("script", r"cdnjs\.cloudflare\.com|/cdn-cgi/|static\.cloudflareinsights\.com", 0.6),
         _p("html", r"/cdn-cgi/", 0.4)),
    _sig("AWS", HOSTING,
         _p("script", r"\.amazonaws\.com|\.cloudfront\.net", 0.6),
         _p("link", r"\.amazonaws\.com|\.cloudfront\.net", 0.6)),

    # Databases and backend-as-a-service
    _sig("Firebase", DATABASE,
         _p("script", rf"firebase(?:-app)?{VERSION}", 0.8),
         _p("inline", r"firebaseConfig|initializeApp\(\s*\{[^}]*apiKey", 0.6),
         _p("url", r"\.(?:web|firebaseapp)\.app|\.firebaseapp\.com", 0.7)),
    _sig("Supabase", DATABASE,
         _p("script", r"supabase", 0.7),
         _p("inline", r"\.supabase\.co|createClient\([^)]*supabase", 0.7)),
)
