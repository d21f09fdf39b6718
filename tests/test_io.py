import pandas as pd

from gymmatch.io import (
    load_source_gyms_from_csv,
    load_tournaments_from_csv,
    write_master_gyms_csv,
    write_pending_matches_csv,
)
from gymmatch.models import MasterGym, MatchSignals, Org, PendingMatch


def test_load_source_gyms_accepts_column_aliases(tmp_path):
    path = tmp_path / "jjwl.csv"
    path.write_text(
        "id,Name,City,countryCode\n"
        "0042,Pablo Silva BJJ,Bellaire,US\n"
        "43,,Houston,US\n"
        ",Nameless,Houston,US\n"
    )

    gyms = load_source_gyms_from_csv(str(path), Org.JJWL)

    assert len(gyms) == 1
    gym = gyms[0]
    assert gym.external_id == "0042"
    assert gym.key == "SRCGYM#JJWL#0042"
    assert (gym.city, gym.country_code, gym.state) == ("Bellaire", "US", None)


def test_load_tournaments_skips_unknown_orgs(tmp_path):
    path = tmp_path / "tournaments.csv"
    path.write_text(
        "org,id,name,city,venue\n"
        "ibjjf,1,Pans,Kissimmee,Silver Spurs Arena\n"
        "ADCC,2,Trials,Austin,\n"
        "JJWL,3,Long Beach Open,,Walter Pyramid\n"
    )

    tournaments = load_tournaments_from_csv(str(path))

    assert [(t.org, t.external_id) for t in tournaments] == [(Org.IBJJF, "1")]
    assert tournaments[0].venue == "Silver Spurs Arena"


def test_writers_flatten_records(tmp_path):
    path = tmp_path / "out" / "pending.csv"
    match = PendingMatch(
        id="p1",
        source_gym_id="SRCGYM#JJWL#5",
        source_gym_name="Gracie Barra Miami",
        master_gym_id="m1",
        master_gym_name="Gracie Barra",
        confidence=82.5,
        signals=MatchSignals(name_similarity=82.5),
    )

    assert write_pending_matches_csv([match], str(path)) == 1
    df = pd.read_csv(path)
    assert df.loc[0, "status"] == "pending"
    assert df.loc[0, "signals_name_similarity"] == 82.5


def test_master_gyms_written_in_search_key_order(tmp_path):
    path = tmp_path / "masters.csv"
    gyms = [
        MasterGym(id="2", canonical_name="Zenith", search_key="zenith"),
        MasterGym(id="1", canonical_name="Atos", search_key="atos"),
    ]
    write_master_gyms_csv(gyms, str(path))
    assert list(pd.read_csv(path)["canonical_name"]) == ["Atos", "Zenith"]
