"""Relevance scoring for gram-based search."""

from typing import List

from pydantic import BaseModel, Field


class SearchConfig(BaseModel):
    """Tunable parameters for gram generation and scoring."""

    ngram_size: int = Field(default=3, ge=1, description="Length of fuzzy-match n-grams")
    min_edgegram: int = Field(default=2, description="Shortest prefix indexed")
    max_edgegram: int = Field(default=10, ge=1, description="Longest prefix indexed")
    exact_match_boost: float = Field(default=100.0, ge=0, description="Score added per exact query word")
    ngram_weight: float = Field(default=0.5, ge=0, description="Score per matched n-gram posting")
    edgegram_weight: float = Field(default=1.0, ge=0, description="Score per full-length edge-gram match")
    min_score: float = Field(default=0.1, ge=0, description="Results scoring below this are dropped")


class RelevanceScorer:
    """Combines exact-word, n-gram and edge-gram signals into one score."""

    def __init__(self, config: SearchConfig) -> None:
        self.config = config

    def edgegram_strength(self, gram: str) -> float:
        """
        Match signal contributed by one edge-gram posting.

        Longer prefixes are more specific, so the signal grows with the
        prefix length relative to ``max_edgegram``.
        """
        return len(gram) / self.config.max_edgegram

    def exact_matches(self, content: str, search_terms: List[str]) -> int:
        """Count distinct query terms that appear verbatim as a word of ``content``."""
        words = set(content.lower().split())
        return sum(1 for term in dict.fromkeys(search_terms) if term.lower() in words)

    def score(
        self,
        content: str,
        search_terms: List[str],
        ngram_matches: float,
        edgegram_matches: float,
    ) -> float:
        """
        Calculate the relevance score of a document.

        Args:
            content: Stored document content
            search_terms: Normalized query terms
            ngram_matches: Number of n-gram postings that hit the document
            edgegram_matches: Summed edge-gram strengths that hit the document

        Returns:
            Raw weighted sum, not normalized by document or query length
        """
        score = self.exact_matches(content, search_terms) * self.config.exact_match_boost
        score += ngram_matches * self.config.ngram_weight
        score += edgegram_matches * self.config.edgegram_weight
        return score
