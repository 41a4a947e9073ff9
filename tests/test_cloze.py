"""Tests for cloze rendering."""

import pytest

from rote.core.cloze import (
    ANSWER_SEPARATOR,
    CLOZE_PLACEHOLDER,
    expand_newlines,
    extract_cloze_deletions,
    render_answer,
    render_prompt,
    render_reveal,
)


class TestExtract:
    """Tests for extracting cloze spans."""

    def test_single(self):
        """Test one span."""
        assert extract_cloze_deletions("The capital of France is [Paris].") == ["Paris"]

    def test_multiple_in_order(self):
        """Test spans come back in order of appearance."""
        text = "[Water] boils at [100] degrees [Celsius]"
        assert extract_cloze_deletions(text) == ["Water", "100", "Celsius"]

    def test_no_cloze(self):
        """Test plain text has no spans."""
        assert extract_cloze_deletions("Just text") == []

    def test_empty_span_skipped(self):
        """Test empty brackets are not reported as deletions."""
        assert extract_cloze_deletions("a [] b [c]") == ["c"]

    def test_nested_brackets_form_one_span(self):
        """Test nested brackets belong to the outer span."""
        assert extract_cloze_deletions("x [a [b] c] y") == ["a [b] c"]


class TestRenderPrompt:
    """Tests for the prompt side."""

    def test_blanks_span(self):
        """Test a single cloze is blanked."""
        assert render_prompt("The capital of France is [Paris].") == (
            f"The capital of France is {CLOZE_PLACEHOLDER}."
        )
        assert CLOZE_PLACEHOLDER == "___"

    def test_prompt_and_reveal_pair(self):
        """Test the prompt and reveal of the same text."""
        assert render_prompt("The [human] body") == "The ___ body"
        assert render_reveal("The [human] body") == "The human body"

    def test_blanks_every_span(self):
        """Test every span is blanked at once."""
        assert render_prompt("[a] and [b]") == "___ and ___"

    def test_plain_text_unchanged(self):
        """Test text without brackets passes through."""
        assert render_prompt("What is 2+2?") == "What is 2+2?"

    def test_empty_brackets_alone_unchanged(self):
        """Test text whose only brackets are empty keeps them."""
        assert render_prompt("a [] b") == "a [] b"
        assert render_prompt("x[]\\ny") == "x[]\ny"

    def test_empty_brackets_blanked_beside_a_span(self):
        """Test empty brackets are blanked along with a real span."""
        assert render_prompt("a [] b [c]") == "a ___ b ___"

    def test_custom_placeholder(self):
        """Test the placeholder can be overridden."""
        assert render_prompt("[x] = 1", placeholder="[...]") == "[...] = 1"

    def test_expands_literal_newlines(self):
        """Test literal backslash-n becomes a line break."""
        assert render_prompt("line one\\n[line two]") == "line one\n___"

    def test_stray_closing_bracket_dropped(self):
        """Test a lone ] does not leak into the prompt."""
        assert render_prompt("a ] b [c]") == "a  b ___"

    def test_unclosed_bracket_runs_to_end(self):
        """Test an unclosed [ hides the rest of the text."""
        assert render_prompt("keep [hidden text") == "keep ___"

    def test_latex_passes_through(self):
        """Test LaTeX outside spans is left alone."""
        assert render_prompt("$e^{i\\pi}$ = [-1]") == "$e^{i\\pi}$ = ___"


class TestRenderAnswer:
    """Tests for the answer side."""

    def test_reveal_strips_brackets(self):
        """Test the reveal shows span contents."""
        assert render_reveal("The capital of France is [Paris].") == (
            "The capital of France is Paris."
        )

    def test_answer_with_back(self):
        """Test the back follows the revealed front after a separator."""
        answer = render_answer("[Paris] is in France", "Capital since 508")
        assert answer == f"Paris is in France{ANSWER_SEPARATOR}Capital since 508"

    def test_answer_without_back(self):
        """Test a blank back yields just the revealed front."""
        assert render_answer("[Paris]", "") == "Paris"
        assert render_answer("[Paris]", "   ") == "Paris"

    def test_answer_expands_newlines_in_back(self):
        """Test literal newlines in the back are expanded."""
        assert render_answer("Q", "a\\nb") == f"Q{ANSWER_SEPARATOR}a\nb"

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("plain", "plain"),
            ("a\\nb", "a\nb"),
            ("a\\n\\nb", "a\n\nb"),
        ],
    )
    def test_expand_newlines(self, text, expected):
        """Test newline expansion."""
        assert expand_newlines(text) == expected
