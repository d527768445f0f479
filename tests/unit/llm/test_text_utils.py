"""
Unit tests for prompt text utilities.
"""

from jobmail_inference.llm.text_utils import (
    HEAD_TAIL_SEPARATOR,
    compact_whitespace,
    truncate_at_sentence_boundary,
    truncate_head_tail,
)


class TestCompactWhitespace:

    def test_collapses_spaces_and_blank_lines(self):
        assert compact_whitespace("a  \t b\r\n\r\n\r\n\nc") == "a b\n\nc"

    def test_keeps_single_newlines(self):
        assert compact_whitespace("line one\nline two") == "line one\nline two"


class TestTruncateAtSentenceBoundary:

    def test_short_text_unchanged(self):
        assert truncate_at_sentence_boundary("Short text.", 100) == "Short text."

    def test_cuts_at_last_sentence(self):
        assert truncate_at_sentence_boundary("Hello. World. Test.", 15) == "Hello. World."

    def test_falls_back_to_word_boundary(self):
        text = "word " * 30
        result = truncate_at_sentence_boundary(text, 50)

        assert len(result) <= 50
        assert not result.endswith(" ")
        assert result.endswith("word")

    def test_hard_cut_without_boundaries(self):
        assert truncate_at_sentence_boundary("x" * 100, 10) == "x" * 10


class TestTruncateHeadTail:

    def test_short_text_unchanged(self):
        assert truncate_head_tail("abc", 10, 3) == "abc"

    def test_keeps_head_and_tail(self):
        result = truncate_head_tail("a" * 10 + "b" * 10, 15, 5)

        assert result == "aaaaa" + HEAD_TAIL_SEPARATOR + "bbbbb"
        assert len(result) == 15

    def test_no_room_for_head(self):
        assert truncate_head_tail("a" * 30, 8, 6) == "a" * 8

    def test_zero_tail_is_prefix(self):
        assert truncate_head_tail("abcdefghij", 4, 0) == "abcd"
