"""Tests for line chunking."""

from __future__ import annotations

import pytest

from chatsearch.errors import ConfigurationError
from chatsearch.utils.text import chunk_lines


def _numbered(count: int) -> str:
    return "\n".join(f"line {i}" for i in range(count))


class TestChunkLines:
    """Test chunk_lines function."""

    def test_chunk_short_text(self) -> None:
        """Should return a single chunk for text shorter than a window."""
        chunks = chunk_lines("a\nb\nc", chunk_size=20, overlap=5)

        assert len(chunks) == 1
        assert chunks[0].text == "a\nb\nc"
        assert chunks[0].source_lines == ("a", "b", "c")
        assert chunks[0].start_line == 0

    def test_thirty_lines_default_window(self) -> None:
        """30 lines at 20/5 start windows at lines 0 and 15."""
        chunks = chunk_lines(_numbered(30))

        assert [chunk.start_line for chunk in chunks] == [0, 15]
        assert len(chunks[0].source_lines) == 20
        assert len(chunks[1].source_lines) == 15
        assert chunks[1].source_lines[0] == "line 15"
        assert chunks[1].source_lines[-1] == "line 29"

    def test_chunk_overlap(self) -> None:
        """Consecutive windows should share ``overlap`` lines."""
        chunks = chunk_lines(_numbered(50), chunk_size=10, overlap=3)

        assert chunks[0].source_lines[-3:] == chunks[1].source_lines[:3]

    def test_windows_continue_until_line_count(self) -> None:
        """The last window may be a short tail inside the previous one."""
        chunks = chunk_lines(_numbered(25), chunk_size=20, overlap=5)

        assert [chunk.start_line for chunk in chunks] == [0, 15]
        assert chunks[-1].text.endswith("line 24")

    def test_chunk_empty_text(self) -> None:
        """Should return no chunks for empty text."""
        assert chunk_lines("") == []

    def test_whitespace_only_text(self) -> None:
        """Blank windows are dropped."""
        assert chunk_lines("   \n\t\n\n   ") == []

    def test_blank_window_filtered_between_content(self) -> None:
        """Only the blank middle window is dropped."""
        lines = ["code"] + [""] * 8 + ["more code"]
        chunks = chunk_lines("\n".join(lines), chunk_size=3, overlap=0)

        assert [chunk.start_line for chunk in chunks] == [0, 9]

    def test_zero_overlap(self) -> None:
        chunks = chunk_lines(_numbered(6), chunk_size=2, overlap=0)

        assert [chunk.text for chunk in chunks] == [
            "line 0\nline 1",
            "line 2\nline 3",
            "line 4\nline 5",
        ]

    def test_deterministic(self) -> None:
        """Same input always gives the same chunks."""
        text = _numbered(73) + "\n\n  tail  "

        assert chunk_lines(text, chunk_size=7, overlap=2) == chunk_lines(
            text, chunk_size=7, overlap=2
        )

    @pytest.mark.parametrize("chunk_size,overlap", [(5, 5), (5, 6), (1, 1)])
    def test_overlap_not_smaller_than_size(self, chunk_size: int, overlap: int) -> None:
        """Should raise ConfigurationError when the window would not advance."""
        with pytest.raises(ConfigurationError):
            chunk_lines("some text", chunk_size=chunk_size, overlap=overlap)

    def test_invalid_params_rejected_for_empty_text(self) -> None:
        with pytest.raises(ConfigurationError):
            chunk_lines("", chunk_size=3, overlap=3)

    def test_non_positive_chunk_size(self) -> None:
        with pytest.raises(ConfigurationError):
            chunk_lines("text", chunk_size=0, overlap=0)

    def test_negative_overlap(self) -> None:
        with pytest.raises(ConfigurationError):
            chunk_lines("text", chunk_size=4, overlap=-1)
