import re
from typing import Iterable, Optional

from rapidfuzz.distance import JaroWinkler

from gymmatch.config import MatchingConfig
from gymmatch.matchers.normalizer import normalize_gym_name, strip_punctuation
from gymmatch.models import MatchSignals, ScoredPair, SourceGym

DEFAULT_CONFIG = MatchingConfig()


def name_similarity(name_a: str, name_b: str, config: MatchingConfig = DEFAULT_CONFIG) -> float:
    """
    Jaro-Winkler similarity of two normalized gym names, scaled to 0-100.

    Names that normalize to nothing (e.g. "BJJ Academy") are compared on their
    punctuation-stripped form instead, so two different all-generic names do
    not look identical.
    """
    norm_a = normalize_gym_name(name_a, config.suffixes)
    norm_b = normalize_gym_name(name_b, config.suffixes)
    if not norm_a or not norm_b:
        norm_a, norm_b = strip_punctuation(name_a), strip_punctuation(name_b)
    if not norm_a or not norm_b:
        return 0.0
    # Sorted so the result never depends on argument order
    first, second = sorted((norm_a, norm_b))
    return JaroWinkler.similarity(first, second) * 100.0


def _name_contains_city(name: str, city: Optional[str]) -> bool:
    city = (city or "").strip().lower()
    return bool(city) and city in (name or "").lower()


def city_boost(
    name_a: str,
    name_b: str,
    city_a: Optional[str],
    city_b: Optional[str],
    config: MatchingConfig = DEFAULT_CONFIG,
) -> float:
    """Boost when either gym's name mentions the other gym's city. Needs both cities."""
    if not (city_a or "").strip() or not (city_b or "").strip():
        return 0.0
    if _name_contains_city(name_a, city_b) or _name_contains_city(name_b, city_a):
        return config.city_boost
    return 0.0


def extract_affiliation(name: str, affiliations: Iterable[str]) -> Optional[str]:
    """Return the first known affiliation mentioned in a gym name, if any."""
    cleaned = strip_punctuation(name)
    for affiliation in affiliations:
        if re.search(rf"\b{re.escape(strip_punctuation(affiliation))}\b", cleaned):
            return affiliation
    return None


def affiliation_boost(name_a: str, name_b: str, config: MatchingConfig = DEFAULT_CONFIG) -> float:
    if not config.affiliation_boost:
        return 0.0
    aff_a = extract_affiliation(name_a, config.affiliations)
    aff_b = extract_affiliation(name_b, config.affiliations)
    if aff_a and aff_a == aff_b:
        return config.affiliation_boost
    return 0.0


def score_names(
    name_a: str,
    name_b: str,
    city_a: Optional[str] = None,
    city_b: Optional[str] = None,
    config: MatchingConfig = DEFAULT_CONFIG,
) -> ScoredPair:
    """
    Compute the 0-100 match confidence between two gyms together with the
    signals that produced it.

    Args:
        name_a (str): Display name of the first gym.
        name_b (str): Display name of the second gym.
        city_a (Optional[str]): City of the first gym, if known.
        city_b (Optional[str]): City of the second gym, if known.
        config (MatchingConfig): Boost sizes and token tables.

    Returns:
        ScoredPair: score clamped to [0, 100] and its MatchSignals.
    """
    signals = MatchSignals(
        name_similarity=name_similarity(name_a, name_b, config),
        city_boost=city_boost(name_a, name_b, city_a, city_b, config),
        affiliation_boost=affiliation_boost(name_a, name_b, config),
    )
    total = signals.name_similarity + signals.city_boost + signals.affiliation_boost
    return ScoredPair(score=max(0.0, min(100.0, total)), signals=signals)


def score(
    name_a: str,
    name_b: str,
    city_a: Optional[str] = None,
    city_b: Optional[str] = None,
    config: MatchingConfig = DEFAULT_CONFIG,
) -> float:
    """Match confidence in [0, 100] between two gym names and optional cities."""
    return score_names(name_a, name_b, city_a, city_b, config).score


def score_gyms(gym_a: SourceGym, gym_b: SourceGym, config: MatchingConfig = DEFAULT_CONFIG) -> ScoredPair:
    return score_names(gym_a.name, gym_b.name, gym_a.city, gym_b.city, config)
