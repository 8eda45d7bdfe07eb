"""Countries browser data-loading core.

Image loading through an in-memory cache and a conversion-aware web
repository, observable loading state, and a readiness-gated SQLite store.
"""

__version__ = "1.0.0"
