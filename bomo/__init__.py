"""BOMO knowledge base API: hierarchical tags for notes."""

__version__ = "0.1.0"
