"""
Test suite for the embedding client.

Tests provider error classification and the mapping of provider failures
and malformed vectors onto RateLimitError / EmbeddingError.

Dependencies: pytest, unittest.mock
System role: Verification of the embedding boundary
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from taskengine.boundary.embeddings import EmbeddingClient, is_rate_limit_error
from taskengine.core.exceptions import EmbeddingError, RateLimitError


class ProviderError(Exception):
    """Stand-in for an SDK exception carrying an HTTP status."""

    def __init__(self, message: str, status_code=None, code=None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


def _embeddings(return_value=None, side_effect=None) -> MagicMock:
    embeddings = MagicMock()
    embeddings.aembed_documents = AsyncMock(return_value=return_value, side_effect=side_effect)
    return embeddings


class TestIsRateLimitError:
    """Test suite for is_rate_limit_error()."""

    @pytest.mark.parametrize(
        "exc",
        [
            ProviderError("boom", status_code=429),
            ProviderError("boom", code="RESOURCE_EXHAUSTED"),
            Exception("429 Too Many Requests"),
            Exception("Resource exhausted: quota exceeded for project"),
            Exception("Rate limit reached, slow down"),
        ],
    )
    def test_throttling_errors_should_be_detected(self, exc: Exception) -> None:
        assert is_rate_limit_error(exc) is True

    @pytest.mark.parametrize(
        "exc",
        [
            ProviderError("server error", status_code=500),
            Exception("connection reset by peer"),
            ValueError("invalid input"),
        ],
    )
    def test_other_errors_should_not_be_detected(self, exc: Exception) -> None:
        assert is_rate_limit_error(exc) is False


class TestEmbeddingClient:
    """Test suite for EmbeddingClient.embed()."""

    async def test_embed_should_return_first_vector(self) -> None:
        # Arrange
        embeddings = _embeddings(return_value=[[1, 2, 3]])
        client = EmbeddingClient(embeddings, expected_dimension=3)

        # Act
        vector = await client.embed("hello")

        # Assert
        assert vector == [1.0, 2.0, 3.0]
        assert all(isinstance(v, float) for v in vector)
        embeddings.aembed_documents.assert_awaited_once_with(["hello"])

    async def test_throttled_provider_should_raise_rate_limit_error(self) -> None:
        client = EmbeddingClient(_embeddings(side_effect=ProviderError("slow", status_code=429)))

        with pytest.raises(RateLimitError):
            await client.embed("hello")

    async def test_provider_failure_should_raise_embedding_error(self) -> None:
        client = EmbeddingClient(_embeddings(side_effect=RuntimeError("socket closed")))

        with pytest.raises(EmbeddingError) as exc_info:
            await client.embed("hello")

        assert not isinstance(exc_info.value, RateLimitError)
        assert "socket closed" in str(exc_info.value)

    @pytest.mark.parametrize("vectors", [[], [[]]])
    async def test_empty_vector_should_raise_embedding_error(self, vectors) -> None:
        client = EmbeddingClient(_embeddings(return_value=vectors))

        with pytest.raises(EmbeddingError, match="empty vector"):
            await client.embed("hello")

    async def test_dimension_mismatch_should_raise_embedding_error(self) -> None:
        client = EmbeddingClient(_embeddings(return_value=[[0.1, 0.2]]), expected_dimension=3)

        with pytest.raises(EmbeddingError, match="dimension"):
            await client.embed("hello")

    async def test_no_expected_dimension_should_accept_any_width(self) -> None:
        client = EmbeddingClient(_embeddings(return_value=[[0.5] * 7]))

        assert len(await client.embed("hello")) == 7
