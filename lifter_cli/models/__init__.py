"""
Data Models Layer.

This package contains the Pydantic models and dataclasses that define the core
data structures used throughout the application: templates, tracked items,
run settings, per-item outcomes and run statistics.
"""

from .item import ItemDeclaration, Method, ResolvedItem, Template
from .outcome import Failed, Installed, Outcome, Skipped, VersionCheck
from .settings import RateLimitPolicy, RunSettings
from .stats import RunStats

__all__ = [
    "Failed",
    "Installed",
    "ItemDeclaration",
    "Method",
    "Outcome",
    "RateLimitPolicy",
    "ResolvedItem",
    "RunSettings",
    "RunStats",
    "Skipped",
    "Template",
    "VersionCheck",
]
