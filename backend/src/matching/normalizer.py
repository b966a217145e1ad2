"""Wine name normalization and similarity scoring.

normalize_wine_name() folds a wine name into a compact comparison key:
lower-case, producer honorifics removed, only [a-z0-9] kept.

string_similarity() scores two names in [0, 1]:
    1.0  normalized names are equal
    0.9  one normalized name contains the other
    else Jaccard overlap of the character sets

Examples:
    "Château Margaux"   → "margaux"
    "Dom. Leflaive"     → "leflaive"
    "Domaine de la Romanée-Conti" → "delaromanconti"
"""

import re

# Producer honorifics dropped before comparison
HONORIFIC_PATTERN = re.compile(r"château|chateau|domaine|dom\.", re.IGNORECASE)

NON_ALNUM_PATTERN = re.compile(r"[^a-z0-9]")


def normalize_wine_name(name: str) -> str:
    """Normalize a wine name for matching.

    Args:
        name: Raw product name

    Returns:
        Normalized name (may be empty)
    """
    if not name:
        return ""
    normalized = HONORIFIC_PATTERN.sub("", name.lower())
    normalized = NON_ALNUM_PATTERN.sub("", normalized)
    return normalized.strip()


def string_similarity(a: str, b: str) -> float:
    """Score the similarity of two wine names.

    Symmetric, and 1.0 for any name that survives normalization compared
    with itself. A name that normalizes to nothing carries no evidence and
    scores 0.0 against everything.

    Args:
        a: First product name
        b: Second product name

    Returns:
        Similarity score (0.0-1.0)
    """
    norm_a = normalize_wine_name(a)
    norm_b = normalize_wine_name(b)

    if not norm_a or not norm_b:
        return 0.0

    if norm_a == norm_b:
        return 1.0

    if norm_a in norm_b or norm_b in norm_a:
        return 0.9

    chars_a = set(norm_a)
    chars_b = set(norm_b)
    return len(chars_a & chars_b) / len(chars_a | chars_b)
