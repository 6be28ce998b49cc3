"""
Site Inspector.

Analyzes a website URL and reports its technology stack, design tokens,
UI component inventory, SEO posture and load performance.
"""

__version__ = "1.0.0"
__author__ = "Site Inspector Team"

# Lazy imports to avoid circular dependencies
def get_analyzer():
    """Get the SiteAnalyzer class (lazy import)."""
    from site_inspector.pipeline.orchestrator import SiteAnalyzer
    return SiteAnalyzer

__all__ = ["get_analyzer", "__version__"]
