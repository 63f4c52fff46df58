"""
Google Generative AI embeddings pinned to one vector width.

Chunk rows are compared against each other by the read path, so every
vector the indexing handler stores must have the configured dimension.
GoogleGenerativeAIEmbeddings accepts output_dimensionality only per call;
this subclass fixes it at construction and tags requests as document
embeddings.

Dependencies: langchain_google_genai, langchain_core
System role: Production embedding provider behind EmbeddingClient
"""

import logging
from typing import List

from langchain_core.runnables.config import run_in_executor
from langchain_google_genai import GoogleGenerativeAIEmbeddings

logger = logging.getLogger(__name__)

DOCUMENT_TASK_TYPE = "RETRIEVAL_DOCUMENT"


class FixedDimensionEmbeddings(GoogleGenerativeAIEmbeddings):
    """Document-chunk embeddings with a fixed output dimension."""

    _output_dimensionality: int = 1024

    def __init__(
        self,
        model: str = "models/gemini-embedding-001",
        output_dimensionality: int = 1024,
        **kwargs,
    ) -> None:
        super().__init__(model=model, **kwargs)
        self._output_dimensionality = output_dimensionality
        logger.info(
            f"{__name__}:__init__ - {model} pinned to {output_dimensionality} dimensions"
        )

    def embed_documents(
        self,
        texts: List[str],
        *,
        batch_size: int = 100,
        task_type: str | None = None,
        titles: List[str] | None = None,
        output_dimensionality: int | None = None,
    ) -> List[List[float]]:
        """
        Embed chunk texts at the pinned dimension.

        Args:
            texts: Chunk contents
            batch_size: Texts per provider request
            task_type: Provider task type (RETRIEVAL_DOCUMENT if None)
            titles: Optional per-text titles
            output_dimensionality: Ignored unless it matches the pinned width

        Returns:
            One vector per text
        """
        if output_dimensionality and output_dimensionality != self._output_dimensionality:
            logger.warning(
                f"{__name__}:embed_documents - Requested {output_dimensionality} dimensions, "
                f"using pinned {self._output_dimensionality}"
            )
        return super().embed_documents(
            texts,
            batch_size=batch_size,
            task_type=task_type or DOCUMENT_TASK_TYPE,
            titles=titles,
            output_dimensionality=self._output_dimensionality,
        )

    async def aembed_documents(self, texts: List[str], **kwargs) -> List[List[float]]:
        """Run the pinned sync path in the default executor."""
        return await run_in_executor(None, self.embed_documents, texts, **kwargs)
