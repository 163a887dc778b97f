"""
Core application engine for tracking and installing releases.

This package contains the primary logic. The `RunManager` acts as the run-level
coordinator, delegating the processing of each tracked item to the
`ItemPipeline`, which in turn relies on the resolver, matcher and version
comparator.
"""
