"""
Web Layer.

This package contains the HTTP client and the source strategies that fetch
release pages or JSON release documents and evaluate item locators on them.
"""

from .client import HttpClient
from .rate_limiter import AdaptiveRateLimiter
from .sources import ApiJsonSource, HtmlScrapeSource, ReleaseSource, source_for

__all__ = [
    "AdaptiveRateLimiter",
    "ApiJsonSource",
    "HtmlScrapeSource",
    "HttpClient",
    "ReleaseSource",
    "source_for",
]
