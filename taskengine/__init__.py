"""
Background task engine for document ingestion.

Relational-store task queue, handler registry, timeout-bounded executor,
and the document indexing handler.
"""

__version__ = "0.1.0"
