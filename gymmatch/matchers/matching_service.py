from typing import Collection, Iterable, List, Optional, Tuple

from gymmatch.config import MatchingConfig
from gymmatch.matchers.policy import MatchDecisionPolicy
from gymmatch.matchers.scorer import score_gyms
from gymmatch.models import MatchDecision, RankedMatch, SourceGym


def _same_city(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a and b) and a.strip().lower() == b.strip().lower()


class GymMatchingService:
    """
    Score one source gym against a pool of known gyms.

    Only scores; never touches the registry. The scan is linear in the pool
    size, so a full sync is O(n^2) across a federation's gyms.
    """

    def __init__(self, config: MatchingConfig = None):
        self.config = config or MatchingConfig()
        self.policy = MatchDecisionPolicy(self.config)

    def find_matches_for_gym(
        self,
        candidate: SourceGym,
        pool: Iterable[SourceGym],
        targets: Iterable[SourceGym] = (),
        excluded_master_ids: Collection[str] = (),
    ) -> List[RankedMatch]:
        """
        Rank the gyms a candidate could be the same real-world gym as.

        Args:
            candidate (SourceGym): Gym being resolved.
            pool (Iterable[SourceGym]): Known gyms; only those already linked to a master gym are scored.
            targets (Iterable[SourceGym]): Extra comparison targets scored regardless of link state.
            excluded_master_ids (Collection[str]): Master gyms a reviewer already ruled out for this candidate.

        Returns:
            List[RankedMatch]: Matches at or above the pending threshold, best first.
            Ties prefer an exact city match, then the smaller external id.
        """
        comparable = [gym for gym in pool if gym.master_gym_id]
        comparable.extend(targets)

        seen = set()
        matches: List[RankedMatch] = []
        for gym in comparable:
            if gym.key == candidate.key or gym.key in seen:
                continue
            seen.add(gym.key)
            if gym.master_gym_id and gym.master_gym_id in excluded_master_ids:
                continue

            scored = score_gyms(candidate, gym, self.config)
            if self.policy.is_candidate(scored.score):
                matches.append(RankedMatch(gym=gym, score=scored.score, signals=scored.signals))

        matches.sort(
            key=lambda m: (
                -m.score,
                0 if _same_city(candidate.city, m.gym.city) else 1,
                str(m.gym.external_id),
            )
        )
        return matches

    def best_match(
        self,
        candidate: SourceGym,
        pool: Iterable[SourceGym],
        targets: Iterable[SourceGym] = (),
        excluded_master_ids: Collection[str] = (),
    ) -> Tuple[Optional[RankedMatch], MatchDecision]:
        """Top-ranked match for a candidate and the policy's verdict on it."""
        matches = self.find_matches_for_gym(candidate, pool, targets, excluded_master_ids)
        if not matches:
            return None, MatchDecision.NO_MATCH
        top = matches[0]
        return top, self.policy.classify(top.score)
