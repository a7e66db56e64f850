"""ragservice - knowledge base registry and vector search service."""

__version__ = "0.1.0"
