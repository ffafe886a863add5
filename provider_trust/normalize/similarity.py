"""
Fuzzy string similarity for ProviderTrust.

Edit-distance based comparator used to match claimed names and addresses
against the values found in registry evidence.
"""

import re

from Levenshtein import distance as levenshtein_distance

SEPARATOR_PATTERN = re.compile(r"[.,#-]")
WHITESPACE_PATTERN = re.compile(r"\s+")


def normalize_for_comparison(value: str) -> str:
    """
    Normalize a string before comparison.

    Lowercases, turns '.', ',', '#' and '-' into spaces and collapses
    whitespace runs.

    Args:
        value: Raw string

    Returns:
        Normalized string
    """
    if not isinstance(value, str):
        return ""

    value = SEPARATOR_PATTERN.sub(" ", value.lower())
    return WHITESPACE_PATTERN.sub(" ", value).strip()


def similarity(a: str, b: str) -> float:
    """
    Calculate normalized edit-distance similarity between two strings.

    A blank value on either side never matches, so two empty fields
    score 0 rather than 1.

    Args:
        a: First string
        b: Second string

    Returns:
        Similarity in [0, 1]
    """
    s1 = normalize_for_comparison(a)
    s2 = normalize_for_comparison(b)
    if not s1 or not s2:
        return 0.0

    dist = levenshtein_distance(s1, s2)
    return max(0.0, 1.0 - dist / max(len(s1), len(s2)))
