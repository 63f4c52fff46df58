"""
Test suite for TextChunker.

Covers window geometry, sentence/newline cuts, trimming, and the
contiguity/coverage guarantees the indexing handler relies on.

System role: Verification of the chunking stage
"""

import random

import pytest

from taskengine.core.chunking import TextChunker


def _random_text(rng: random.Random, length: int) -> str:
    alphabet = "abcdefghij     .\n"
    return "".join(rng.choice(alphabet) for _ in range(length))


class TestTextChunkerInit:
    """Test suite for TextChunker argument validation."""

    @pytest.mark.parametrize(
        ("chunk_size", "overlap"),
        [(0, 0), (-5, 0), (100, -1), (100, 100), (100, 150)],
    )
    def test_init_should_reject_invalid_geometry(self, chunk_size: int, overlap: int) -> None:
        with pytest.raises(ValueError):
            TextChunker(chunk_size=chunk_size, overlap=overlap)

    def test_init_should_default_to_1000_and_100(self) -> None:
        chunker = TextChunker()

        assert chunker.chunk_size == 1000
        assert chunker.overlap == 100


class TestTextChunkerSpans:
    """Test suite for TextChunker.chunk_spans()."""

    def test_2300_chars_without_breaks_should_yield_three_windows(self) -> None:
        """Test the reference example: 2300 chars, size 1000, overlap 100."""
        # Arrange
        chunker = TextChunker(chunk_size=1000, overlap=100)
        text = "x" * 2300

        # Act
        spans = chunker.chunk_spans(text)
        chunks = chunker.chunk(text)

        # Assert
        assert spans == [(0, 1000), (900, 1900), (1800, 2300)]
        assert len(chunks) == 3
        assert all(len(chunk) <= 1000 for chunk in chunks)
        assert spans[1][0] >= spans[0][1] - 100

    def test_should_cut_after_period_in_second_half(self) -> None:
        # Arrange
        chunker = TextChunker(chunk_size=1000, overlap=100)
        text = "a" * 600 + "." + "b" * 1000

        # Act
        spans = chunker.chunk_spans(text)

        # Assert
        assert spans[0] == (0, 601)
        assert text[spans[0][0]:spans[0][1]].endswith(".")
        assert spans[1][0] == 501

    def test_should_cut_after_newline_in_second_half(self) -> None:
        chunker = TextChunker(chunk_size=1000, overlap=100)
        text = "a" * 800 + "\n" + "b" * 1000

        spans = chunker.chunk_spans(text)

        assert spans[0] == (0, 801)

    def test_should_ignore_break_in_first_half(self) -> None:
        chunker = TextChunker(chunk_size=1000, overlap=100)
        text = "a" * 300 + "." + "b" * 1000

        spans = chunker.chunk_spans(text)

        assert spans[0] == (0, 1000)

    def test_short_text_should_be_single_window(self) -> None:
        chunker = TextChunker(chunk_size=1000, overlap=100)

        assert chunker.chunk_spans("Hello. World.") == [(0, 13)]

    def test_empty_text_should_yield_no_windows(self) -> None:
        assert TextChunker().chunk_spans("") == []

    @pytest.mark.parametrize("seed", range(10))
    def test_windows_should_cover_text_without_gaps(self, seed: int) -> None:
        """Test every character lies in some window and windows always advance."""
        # Arrange
        rng = random.Random(seed)
        chunker = TextChunker(chunk_size=200, overlap=30)
        text = _random_text(rng, rng.randint(1, 5000))

        # Act
        spans = chunker.chunk_spans(text)

        # Assert
        assert spans[0][0] == 0
        assert spans[-1][1] == len(text)
        for (prev_start, prev_end), (start, end) in zip(spans, spans[1:]):
            assert prev_start < start <= prev_end
            assert end - start <= 200

    def test_dense_sentence_breaks_should_still_reach_the_end(self) -> None:
        """Test a long text cut at every possible point is fully covered."""
        chunker = TextChunker(chunk_size=1000, overlap=100)
        text = ("a" * 501 + ".") * 300

        spans = chunker.chunk_spans(text)

        assert spans[-1][1] == len(text)


class TestTextChunkerChunk:
    """Test suite for TextChunker.chunk()."""

    def test_chunks_should_be_stripped(self) -> None:
        chunker = TextChunker(chunk_size=1000, overlap=100)

        assert chunker.chunk("   padded text   ") == ["padded text"]

    def test_whitespace_only_windows_should_be_dropped(self) -> None:
        chunker = TextChunker(chunk_size=10, overlap=2)
        text = "abc" + " " * 30

        chunks = chunker.chunk(text)

        assert chunks == ["abc"]

    def test_should_be_deterministic(self) -> None:
        chunker = TextChunker(chunk_size=120, overlap=20)
        text = _random_text(random.Random(42), 2000)

        assert chunker.chunk(text) == chunker.chunk(text)
