"""
Heuristic course-name matching for inline suggestions.

The ranking is approximate: a containment pass first, then a word-overlap
score with prefix and acronym bonuses. It is deterministic, and ties go to
the candidate that appears first.
"""
from __future__ import annotations

from typing import Sequence

from .tokenization import acronym, split_words

SCORE_THRESHOLD = 0.5
PREFIX_BONUS = 2.0
ACRONYM_BONUS = 3.0
ACRONYM_MAX_QUERY_CHARS = 6


def score_candidate(token: str, candidate: str) -> float:
    query_lower = str(token or "").lower()
    query_words = split_words(query_lower)
    candidate_words = split_words(candidate)

    score = 0.0
    for query_word in query_words:
        for candidate_word in candidate_words:
            if query_word in candidate_word:
                score += len(query_word) / len(candidate_word)
            if candidate_word.startswith(query_word):
                score += PREFIX_BONUS

    # "cs" -> "Computer Systems"
    if len(query_lower) <= ACRONYM_MAX_QUERY_CHARS and query_lower in acronym(candidate_words):
        score += ACRONYM_BONUS
    return score


def best_match(token: str, candidates: Sequence[str]) -> str:
    """Returns the best candidate for token, or "" when nothing scores above the threshold."""
    if not str(token or "").strip():
        return ""

    query_lower = token.lower()
    for candidate in candidates:
        if query_lower in candidate.lower():
            return candidate

    best_candidate = ""
    best_score = 0.0
    for candidate in candidates:
        score = score_candidate(token, candidate)
        if score > best_score:
            best_score = score
            best_candidate = candidate

    return best_candidate if best_score > SCORE_THRESHOLD else ""
