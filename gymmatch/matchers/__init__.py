"""Name normalization, scoring, decision policy and matching service."""
from gymmatch.matchers.normalizer import normalize_gym_name
from gymmatch.matchers.scorer import score, score_gyms, score_names
from gymmatch.matchers.policy import MatchDecisionPolicy, classify_score
from gymmatch.matchers.matching_service import GymMatchingService

__all__ = [
    "normalize_gym_name",
    "score",
    "score_gyms",
    "score_names",
    "MatchDecisionPolicy",
    "classify_score",
    "GymMatchingService",
]
