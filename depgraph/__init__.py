"""DepGraph: cross-repository Go module dependency analysis."""

__version__ = "0.1.0"
