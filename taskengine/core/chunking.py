"""
Text chunking for document indexing.

Splits text into overlapping fixed-size windows, preferring to end a
window at a sentence terminator or newline when one lies in the second
half of the window. Pure and deterministic.

Dependencies: None
System role: Chunking stage of the ingestion pipeline
"""

import math


class TextChunker:
    """Split text into overlapping character windows."""

    def __init__(self, chunk_size: int = 1000, overlap: int = 100) -> None:
        """
        Initialize chunker.

        Args:
            chunk_size: Maximum window length in characters
            overlap: Characters shared between consecutive windows

        Raises:
            ValueError: chunk_size <= 0, overlap < 0, or overlap >= chunk_size
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if overlap < 0 or overlap >= chunk_size:
            raise ValueError("overlap must be in [0, chunk_size)")
        self.chunk_size = chunk_size
        self.overlap = overlap

    def chunk_spans(self, text: str) -> list[tuple[int, int]]:
        """
        Compute raw window boundaries before trimming.

        Args:
            text: Source text

        Returns:
            list[tuple[int, int]]: (start, end) offsets, end exclusive
        """
        spans: list[tuple[int, int]] = []
        length = len(text)
        start = 0
        # A sentence cut keeps more than half the window, so no step is shorter than this
        min_step = max(self.chunk_size // 2 + 1 - self.overlap, 1)
        max_iterations = math.ceil(length / min_step) + 10
        iterations = 0

        while start < length and iterations < max_iterations:
            iterations += 1
            end = min(start + self.chunk_size, length)

            if end < length:
                window = text[start:end]
                break_point = max(window.rfind("."), window.rfind("\n"))
                if break_point > self.chunk_size / 2:
                    end = start + break_point + 1

            spans.append((start, end))
            # A window that reaches the end covers the tail; no shorter suffix windows
            if end >= length:
                break
            start += max(end - start - self.overlap, 1)

        return spans

    def chunk(self, text: str) -> list[str]:
        """
        Split text into trimmed, non-empty chunks.

        Args:
            text: Source text

        Returns:
            list[str]: Chunks in reading order; position is the chunk index
        """
        chunks = []
        for start, end in self.chunk_spans(text):
            piece = text[start:end].strip()
            if piece:
                chunks.append(piece)
        return chunks
