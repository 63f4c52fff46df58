"""
Embedding service boundary.

Exports:
  - EmbeddingClient: single-chunk embed with error classification
  - create_embedding_client(): production client from settings
  - is_rate_limit_error(): provider error classifier
"""

from taskengine.boundary.embeddings.embedding_client import (
    EmbeddingClient,
    create_embedding_client,
    is_rate_limit_error,
)

__all__ = ["EmbeddingClient", "create_embedding_client", "is_rate_limit_error"]
