import re
import unicodedata
from functools import lru_cache
from typing import Iterable, Pattern, Tuple

from gymmatch.config import GYM_SUFFIXES

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def _clean(text: str) -> str:
    """Lowercase, fold accents, turn punctuation into spaces and collapse whitespace."""
    text = unicodedata.normalize("NFKD", (text or "").lower().strip())
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = _NON_ALNUM.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()


@lru_cache(maxsize=16)
def _suffix_pattern(suffixes: Tuple[str, ...]) -> Pattern:
    # Suffixes go through the same cleaning as names so "jiu-jitsu" becomes "jiu jitsu".
    # Longest first so "brazilian jiu jitsu" wins over "jiu jitsu".
    cleaned = sorted({_clean(s) for s in suffixes if _clean(s)}, key=len, reverse=True)
    if not cleaned:
        return re.compile(r"(?!x)x")
    alternation = "|".join(r"\s+".join(map(re.escape, s.split(" "))) for s in cleaned)
    return re.compile(rf"\b(?:{alternation})\b")


def strip_punctuation(name: str) -> str:
    """Cleaned form of a name without generic-token removal."""
    return _clean(name)


def normalize_gym_name(name: str, suffixes: Iterable[str] = GYM_SUFFIXES) -> str:
    """
    Canonicalize a gym name for comparison.

    Lowercases, replaces every character outside [a-z0-9 ] with a space,
    removes generic gym-naming tokens ("bjj", "academy", "jiu jitsu", ...) as
    whole words and collapses whitespace. Idempotent.

    Args:
        name (str): Display name as published by a federation.
        suffixes (Iterable[str]): Tokens to strip (defaults to config.GYM_SUFFIXES).

    Returns:
        str: Normalized name, possibly empty if the name was only generic tokens.

    Example:
        >>> normalize_gym_name("Team #1 BJJ")
        '1'
    """
    pattern = _suffix_pattern(tuple(suffixes))
    normalized = _clean(name)
    # Removing one token can join two others into a listed phrase ("jiu team jitsu")
    while True:
        stripped = _WHITESPACE.sub(" ", pattern.sub(" ", normalized)).strip()
        if stripped == normalized:
            return normalized
        normalized = stripped
