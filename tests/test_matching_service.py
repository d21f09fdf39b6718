from gymmatch.config import MatchingConfig
from gymmatch.matchers.matching_service import GymMatchingService
from gymmatch.models import MatchDecision, Org

from tests.conftest import make_gym


def linked(external_id, name, master="m1", org=Org.IBJJF, **kwargs):
    return make_gym(org=org, external_id=external_id, name=name, master_gym_id=master, **kwargs)


def test_unlinked_pool_gyms_are_ignored():
    service = GymMatchingService()
    candidate = make_gym(name="Gracie Barra")
    pool = [make_gym(org=Org.IBJJF, external_id="7", name="Gracie Barra")]
    assert service.find_matches_for_gym(candidate, pool) == []


def test_targets_are_scored_even_when_unlinked():
    service = GymMatchingService()
    candidate = make_gym(name="Gracie Barra")
    target = make_gym(org=Org.IBJJF, external_id="7", name="Gracie Barra")
    matches = service.find_matches_for_gym(candidate, [], targets=[target])
    assert [m.gym.key for m in matches] == [target.key]
    assert matches[0].score == 100.0


def test_candidate_never_matches_itself():
    service = GymMatchingService()
    candidate = make_gym(name="Gracie Barra", master_gym_id="m1")
    assert service.find_matches_for_gym(candidate, [candidate]) == []


def test_results_below_pending_threshold_are_dropped():
    service = GymMatchingService()
    candidate = make_gym(name="Atos Jiu Jitsu")
    pool = [linked("1", "Atos"), linked("2", "Checkmat", master="m2")]
    matches = service.find_matches_for_gym(candidate, pool)
    assert [m.gym.external_id for m in matches] == ["1"]


def test_ties_prefer_exact_city_match():
    service = GymMatchingService()
    candidate = make_gym(name="Atos", city="Austin")
    pool = [
        linked("1", "Atos", master="m1", city="Dallas"),
        linked("2", "Atos", master="m2", city="austin"),
    ]
    matches = service.find_matches_for_gym(candidate, pool)
    assert [m.gym.external_id for m in matches] == ["2", "1"]


def test_ties_then_prefer_smaller_external_id_as_string():
    service = GymMatchingService()
    candidate = make_gym(name="Atos")
    pool = [linked("9", "Atos", master="m1"), linked("10", "Atos", master="m2")]
    matches = service.find_matches_for_gym(candidate, pool)
    assert [m.gym.external_id for m in matches] == ["10", "9"]


def test_higher_score_ranks_first():
    service = GymMatchingService()
    candidate = make_gym(name="Gracie Barra Miami")
    pool = [linked("1", "Gracie Barra", master="m1"), linked("2", "Gracie Barra Miami", master="m2")]
    matches = service.find_matches_for_gym(candidate, pool)
    assert [m.gym.external_id for m in matches] == ["2", "1"]
    assert matches[0].score > matches[1].score


def test_excluded_master_gyms_are_skipped():
    service = GymMatchingService()
    candidate = make_gym(name="Atos")
    pool = [linked("1", "Atos", master="m1")]
    assert service.find_matches_for_gym(candidate, pool, excluded_master_ids={"m1"}) == []


def test_best_match_on_empty_pool():
    top, decision = GymMatchingService().best_match(make_gym(), [])
    assert top is None
    assert decision is MatchDecision.NO_MATCH


def test_best_match_uses_configured_thresholds():
    service = GymMatchingService(MatchingConfig(auto_link_threshold=95))
    candidate = make_gym(name="Gracie Barra Miami")
    top, decision = service.best_match(candidate, [linked("1", "Gracie Barra")])
    assert top.gym.external_id == "1"
    assert decision is MatchDecision.PENDING
