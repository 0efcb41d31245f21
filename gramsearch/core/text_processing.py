"""Text analysis utilities shared by every search backend."""

import re
from typing import Iterable, List

# Anything that is neither a word character nor whitespace
_NON_WORD_REGEX = re.compile(r"[^\w\s]")
_WHITESPACE_REGEX = re.compile(r"\s+")

HIGHLIGHT_OPEN = "<mark>"
HIGHLIGHT_CLOSE = "</mark>"
ELLIPSIS = "..."


def normalize_text(text: str) -> str:
    """
    Normalize text for gram generation.

    Args:
        text: Input text to normalize

    Returns:
        Lowercased text with punctuation replaced by single spaces
    """
    if not text:
        return ""

    normalized = text.lower()
    normalized = _NON_WORD_REGEX.sub(" ", normalized)
    normalized = _WHITESPACE_REGEX.sub(" ", normalized)

    return normalized.strip()


def split_words(text: str) -> List[str]:
    """Split text into normalized words."""
    normalized = normalize_text(text)
    if not normalized:
        return []
    return normalized.split(" ")


def _unique(grams: Iterable[str]) -> List[str]:
    # dict keeps first-seen order
    return list(dict.fromkeys(grams))


def build_ngrams(text: str, n: int) -> List[str]:
    """
    Build n-grams from text for fuzzy search.

    Words shorter than ``n`` contribute nothing.

    Args:
        text: Input text to process
        n: N-gram size (e.g. 3 for trigrams)

    Returns:
        List of unique n-grams
    """
    if n < 1:
        return []

    grams = []
    for word in split_words(text):
        if len(word) < n:
            continue
        for i in range(len(word) - n + 1):
            grams.append(word[i:i + n])

    return _unique(grams)


def build_edgegrams(text: str, min_gram: int, max_gram: int) -> List[str]:
    """
    Build edge-grams (word prefixes) from text for prefix matching.

    A ``min_gram`` larger than ``max_gram`` yields no grams.

    Args:
        text: Input text to process
        min_gram: Minimum prefix length
        max_gram: Maximum prefix length

    Returns:
        List of unique edge-grams
    """
    if min_gram > max_gram:
        return []

    grams = []
    for word in split_words(text):
        for length in range(max(min_gram, 1), min(max_gram, len(word)) + 1):
            grams.append(word[:length])

    return _unique(grams)


def tokenize_query(query: str) -> List[str]:
    """Lowercase a query and split it on whitespace."""
    if not query:
        return []
    return [term for term in query.lower().split() if term]


def generate_highlights(
    content: str,
    search_terms: List[str],
    max_highlights: int = 3,
    context_length: int = 30,
) -> List[str]:
    """
    Generate highlighted snippets for a search result.

    The highlight budget is shared by all terms: once ``max_highlights``
    snippets exist no further term is scanned.

    Args:
        content: Content to highlight
        search_terms: Terms to highlight
        max_highlights: Maximum number of snippets overall
        context_length: Characters kept on each side of a match

    Returns:
        List of snippets with matches wrapped in ``<mark>`` tags
    """
    highlights: List[str] = []
    if not content:
        return highlights

    content_lower = content.lower()

    for term in search_terms:
        if not term:
            continue

        term_lower = term.lower()
        term_regex = re.compile(re.escape(term), re.IGNORECASE)
        index = content_lower.find(term_lower)

        while index != -1 and len(highlights) < max_highlights:
            start = max(0, index - context_length)
            end = min(len(content), index + len(term) + context_length)
            snippet = term_regex.sub(
                lambda match: f"{HIGHLIGHT_OPEN}{match.group(0)}{HIGHLIGHT_CLOSE}",
                content[start:end],
            )

            prefix = ELLIPSIS if start > 0 else ""
            suffix = ELLIPSIS if end < len(content) else ""
            highlights.append(f"{prefix}{snippet}{suffix}")

            index = content_lower.find(term_lower, index + 1)

    return highlights
