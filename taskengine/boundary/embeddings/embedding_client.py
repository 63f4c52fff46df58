"""
Embedding service client.

Single-text embedding over any LangChain Embeddings implementation, with
provider failures classified into RateLimitError (throttling, retry the
same chunk after a pause) and EmbeddingError (counts against the handler's
error budget).

Dependencies: langchain_core, taskengine.core.exceptions
System role: Embedding adapter used by the indexing handler
"""

import logging

from langchain_core.embeddings import Embeddings

from taskengine.core.exceptions import EmbeddingError, RateLimitError

logger = logging.getLogger(__name__)

_RATE_LIMIT_MARKERS = (
    "429",
    "rate limit",
    "rate_limit",
    "ratelimit",
    "resource exhausted",
    "resource_exhausted",
    "quota",
    "too many requests",
)


def is_rate_limit_error(exc: BaseException) -> bool:
    """
    Decide whether a provider exception means "slow down".

    Checks an HTTP-ish status attribute first, then falls back to the
    message text, since SDKs wrap 429s in their own exception types.

    Args:
        exc: Exception raised by the embedding provider

    Returns:
        True for throttling / quota errors
    """
    for attr in ("status_code", "code", "status"):
        value = getattr(exc, attr, None)
        if value == 429 or (isinstance(value, str) and value.upper() == "RESOURCE_EXHAUSTED"):
            return True
    message = str(exc).lower()
    return any(marker in message for marker in _RATE_LIMIT_MARKERS)


class EmbeddingClient:
    """
    Embed one chunk at a time.

    Wraps a LangChain Embeddings object; callers see only RateLimitError
    or EmbeddingError on failure.
    """

    def __init__(self, embeddings: Embeddings, expected_dimension: int | None = None) -> None:
        """
        Initialize client.

        Args:
            embeddings: LangChain embeddings implementation
            expected_dimension: Reject vectors of any other width when set
        """
        self._embeddings = embeddings
        self._expected_dimension = expected_dimension

    async def embed(self, text: str) -> list[float]:
        """
        Embed a single chunk of text.

        Args:
            text: Chunk content

        Returns:
            list[float]: Embedding vector

        Raises:
            RateLimitError: Provider throttled the request
            EmbeddingError: Any other provider failure or a malformed vector
        """
        try:
            vectors = await self._embeddings.aembed_documents([text])
        except Exception as e:
            if is_rate_limit_error(e):
                raise RateLimitError(f"Embedding rate limited: {e}") from e
            raise EmbeddingError(f"Failed to generate embedding: {e}") from e

        if not vectors or not vectors[0]:
            raise EmbeddingError("Embedding service returned an empty vector")

        vector = [float(v) for v in vectors[0]]
        if self._expected_dimension and len(vector) != self._expected_dimension:
            raise EmbeddingError(
                f"Embedding dimension {len(vector)} != expected {self._expected_dimension}",
                {"dimension": len(vector)},
            )
        return vector


def create_embedding_client() -> EmbeddingClient:
    """
    Build the production embedding client from settings.

    Returns:
        EmbeddingClient: Client backed by Google Generative AI embeddings
    """
    from taskengine.boundary.embeddings.embeddings_wrapper import FixedDimensionEmbeddings
    from taskengine.configs import get_settings

    config = get_settings().embedding
    kwargs = {}
    if config.google_api_key:
        kwargs["google_api_key"] = config.google_api_key

    embeddings = FixedDimensionEmbeddings(
        model=config.model,
        output_dimensionality=config.dimension,
        **kwargs,
    )
    return EmbeddingClient(embeddings, expected_dimension=config.dimension)
