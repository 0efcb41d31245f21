"""Unit tests for text analysis utilities."""

import pytest

from gramsearch.core.text_processing import (
    build_edgegrams,
    build_ngrams,
    generate_highlights,
    normalize_text,
    split_words,
    tokenize_query,
)


class TestNormalizeText:
    """Test cases for text normalization."""

    def test_lowercases_and_strips_punctuation(self):
        assert normalize_text("Hello, World!") == "hello world"

    def test_collapses_whitespace(self):
        assert normalize_text("  real\t\ttime \n apps ") == "real time apps"

    def test_keeps_underscores_and_digits(self):
        assert normalize_text("user_id 42") == "user_id 42"

    def test_empty_input(self):
        assert normalize_text("") == ""
        assert normalize_text("!!! ...") == ""

    def test_split_words(self):
        assert split_words("Real-time, data!") == ["real", "time", "data"]
        assert split_words("   ") == []


class TestBuildNgrams:
    """Test cases for n-gram generation."""

    def test_trigrams_of_single_word(self):
        assert build_ngrams("hello", 3) == ["hel", "ell", "llo"]

    def test_words_shorter_than_n_contribute_nothing(self):
        assert build_ngrams("is a go", 3) == []

    def test_word_of_exactly_n_characters(self):
        assert build_ngrams("cat", 3) == ["cat"]

    def test_sliding_window(self):
        assert build_ngrams("cats", 3) == ["cat", "ats"]
        assert build_ngrams("ab", 3) == []

    def test_grams_are_unique(self):
        grams = build_ngrams("banana banana", 3)
        assert grams == ["ban", "ana", "nan"]

    def test_grams_never_span_words(self):
        grams = build_ngrams("ab cd", 3)
        assert grams == []

    def test_all_grams_have_length_n(self):
        for n in (1, 2, 3, 4):
            assert all(len(g) == n for g in build_ngrams("Redis stores real time data", n))

    def test_non_positive_n(self):
        assert build_ngrams("hello", 0) == []

    def test_input_is_normalized(self):
        assert build_ngrams("HeLLo!", 3) == build_ngrams("hello", 3)


class TestBuildEdgegrams:
    """Test cases for edge-gram generation."""

    def test_prefixes_of_single_word(self):
        assert build_edgegrams("hello", 2, 10) == ["he", "hel", "hell", "hello"]

    def test_capped_prefixes(self):
        assert build_edgegrams("tutorial", 2, 4) == ["tu", "tut", "tuto"]

    def test_max_gram_caps_prefix_length(self):
        assert build_edgegrams("typescript", 2, 4) == ["ty", "typ", "type"]

    def test_word_shorter_than_min_gram(self):
        assert build_edgegrams("a", 2, 10) == []

    def test_min_greater_than_max(self):
        assert build_edgegrams("hello", 5, 3) == []

    def test_every_gram_is_a_word_prefix(self):
        words = split_words("Redis is an in-memory data store")
        for gram in build_edgegrams("Redis is an in-memory data store", 2, 10):
            assert any(word.startswith(gram) for word in words)

    def test_grams_are_unique_across_words(self):
        assert build_edgegrams("data database", 2, 4) == ["da", "dat", "data"]


class TestTokenizeQuery:
    """Test cases for query tokenization."""

    def test_lowercases_and_splits(self):
        assert tokenize_query("Real  TIME") == ["real", "time"]

    def test_whitespace_only(self):
        assert tokenize_query("   \t ") == []
        assert tokenize_query("") == []

    def test_punctuation_is_kept(self):
        assert tokenize_query("in-memory") == ["in-memory"]


class TestGenerateHighlights:
    """Test cases for highlight snippets."""

    def test_wraps_match_in_mark_tags(self):
        highlights = generate_highlights("Redis is fast", ["redis"])
        assert highlights == ["<mark>Redis</mark> is fast"]

    def test_preserves_original_case(self):
        highlights = generate_highlights("Learn TypeScript today", ["typescript"])
        assert highlights == ["Learn <mark>TypeScript</mark> today"]

    def test_ellipses_when_context_is_cut(self):
        content = "x" * 50 + " target " + "y" * 50
        highlights = generate_highlights(content, ["target"], context_length=5)

        assert len(highlights) == 1
        assert highlights[0].startswith("...")
        assert highlights[0].endswith("...")
        assert "<mark>target</mark>" in highlights[0]

    def test_budget_is_shared_across_terms(self):
        content = "data data data data and more"
        highlights = generate_highlights(content, ["data", "more"], max_highlights=3)

        assert len(highlights) == 3
        assert all("<mark>more</mark>" not in h for h in highlights)

    def test_no_match_yields_nothing(self):
        assert generate_highlights("Redis is fast", ["python"]) == []

    def test_regex_metacharacters_are_literal(self):
        highlights = generate_highlights("costs $5 (approx.)", ["(approx.)"])
        assert highlights == ["costs $5 <mark>(approx.)</mark>"]

    def test_empty_terms_are_skipped(self):
        assert generate_highlights("Redis is fast", [""]) == []

    @pytest.mark.parametrize("content", ["", None])
    def test_empty_content(self, content):
        assert generate_highlights(content, ["redis"]) == []
