"""Vessel identity comparators — name normalization, edit distance, IMO equality."""
from __future__ import annotations

import re
from typing import Any

from unidecode import unidecode

# Vessel-class designators that sources prepend/append inconsistently.
# Longer alternatives first so "MOTOR VESSEL" wins over "VESSEL".
_CLASS_DESIGNATOR_RE = re.compile(
    r"\b(?:MOTOR\s+VESSEL|MOTOR\s+TANKER|M\s*/\s*V|M\s*/\s*T|MV|MT|VESSEL|TANKER)\b",
    re.IGNORECASE,
)
_NON_ALNUM_RE = re.compile(r"[^A-Z0-9]")
_IMO_PREFIX_RE = re.compile(r"^IMO[\s:.#-]*", re.IGNORECASE)


def normalize_vessel_name(name: str | None) -> str:
    """Uppercase, transliterate, strip class designators and non-alphanumerics.

    >>> normalize_vessel_name("M/V Ocean Star")
    'OCEANSTAR'
    """
    if not name:
        return ""
    text = unidecode(name).upper()
    text = _CLASS_DESIGNATOR_RE.sub(" ", text)
    return _NON_ALNUM_RE.sub("", text)


def levenshtein(a: str, b: str) -> int:
    """Edit distance (insert / delete / substitute, unit cost) via the full DP table."""
    rows, cols = len(a) + 1, len(b) + 1
    table = [[0] * cols for _ in range(rows)]
    for i in range(rows):
        table[i][0] = i
    for j in range(cols):
        table[0][j] = j
    for i in range(1, rows):
        for j in range(1, cols):
            cost = 0 if a[i - 1] == b[j - 1] else 1
            table[i][j] = min(
                table[i - 1][j] + 1,         # deletion
                table[i][j - 1] + 1,         # insertion
                table[i - 1][j - 1] + cost,  # substitution
            )
    return table[rows - 1][cols - 1]


def vessel_name_similarity(name1: str | None, name2: str | None) -> float:
    """Similarity in [0, 1] between two reported vessel names.

    Returns 0 when either name is missing or when a name carries no identity
    once class designators are removed (e.g. "M/V" or "TANKER").
    """
    if not name1 or not name2 or not name1.strip() or not name2.strip():
        return 0.0
    n1 = normalize_vessel_name(name1)
    n2 = normalize_vessel_name(name2)
    if not n1 or not n2:
        return 0.0
    if n1 == n2:
        return 1.0
    distance = levenshtein(n1, n2)
    return max(0.0, 1.0 - distance / max(len(n1), len(n2)))


def normalize_imo(imo: Any) -> str | None:
    """Stringify an IMO number from any source representation.

    Accepts ints, integral floats and strings with an optional "IMO" prefix.
    Returns None for missing or blank values.
    """
    if imo is None or isinstance(imo, bool):
        return None
    if isinstance(imo, float):
        if not imo.is_integer():
            return None
        imo = int(imo)
    text = _IMO_PREFIX_RE.sub("", str(imo).strip()).strip()
    return text or None


def imo_similarity(imo1: Any, imo2: Any) -> float:
    """1.0 iff both IMO numbers are present and equal as strings, else 0.0."""
    n1 = normalize_imo(imo1)
    n2 = normalize_imo(imo2)
    if n1 is None or n2 is None:
        return 0.0
    return 1.0 if n1 == n2 else 0.0


def validate_imo_checksum(imo: Any) -> bool:
    """Validate an IMO number using the check digit algorithm.

    Sum of (digit_i * (7-i)) for i=0..5 mod 10 == check digit (digit 6).
    """
    digits = normalize_imo(imo)
    if digits is None or not digits.isdigit() or len(digits) != 7:
        return False
    total = sum(int(digits[i]) * (7 - i) for i in range(6))
    return total % 10 == int(digits[6])
