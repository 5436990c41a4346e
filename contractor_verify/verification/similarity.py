"""Edit-distance based string similarity."""

import re

from Levenshtein import distance as levenshtein_distance

_NON_DIGITS = re.compile(r"\D")


def similarity(a: str, b: str) -> float:
    """Return ``(max_len - edit_distance) / max_len`` in [0, 1].

    Two empty strings are a perfect match. Comparison is case sensitive.
    """
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 1.0
    return (max_len - levenshtein_distance(a, b)) / max_len


def digits_only(value: str) -> str:
    return _NON_DIGITS.sub("", value)
