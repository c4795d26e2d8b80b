"""Task dependency graph analysis: components, ordering and critical paths."""

__version__ = "0.1.0"
