from gymmatch.config import MatchingConfig
from gymmatch.models import MatchDecision


class MatchDecisionPolicy:
    """
    Map a match score to auto-link, pending review or no-match.

    Both thresholds are inclusive lower bounds: a score equal to the auto-link
    threshold auto-links, a score equal to the pending threshold is queued.
    """

    def __init__(self, config: MatchingConfig = None):
        self.config = config or MatchingConfig()

    def classify(self, score: float) -> MatchDecision:
        if score >= self.config.auto_link_threshold:
            return MatchDecision.AUTO_LINK
        if score >= self.config.pending_threshold:
            return MatchDecision.PENDING
        return MatchDecision.NO_MATCH

    def is_candidate(self, score: float) -> bool:
        return self.classify(score) is not MatchDecision.NO_MATCH


def classify_score(score: float, config: MatchingConfig = None) -> MatchDecision:
    """Convenience wrapper around MatchDecisionPolicy.classify."""
    return MatchDecisionPolicy(config).classify(score)
