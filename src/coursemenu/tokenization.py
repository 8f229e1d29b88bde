"""
Shared word helpers for suggestion matching.
"""
from __future__ import annotations


def split_words(text: str) -> list[str]:
    """
    Lowercases text and splits it on runs of whitespace.
    Punctuation stays attached to its word ("iii:" is one word).
    """
    return str(text or "").lower().split()


def acronym(words: list[str]) -> str:
    return "".join(word[0] for word in words if word)
