import pytest

from gymmatch.matchers.normalizer import normalize_gym_name, strip_punctuation


@pytest.mark.parametrize("raw, expected", [
    ("Team #1 BJJ", "1"),
    ("Pablo Silva BJJ", "pablo silva"),
    ("Gracie Barra Brazilian Jiu-Jitsu", "gracie barra"),
    ("Alliance Jiu Jitsu Academy HQ", "alliance"),
    ("  ATOS   jiujitsu  ", "atos"),
    ("Checkmat Martial Arts Training Center", "checkmat"),
    ("Ribeiro's MMA", "ribeiro s"),
    ("Nova União", "nova uniao"),
    ("10th Planet Jiu Jitsu", "10th planet"),
])
def test_normalize_gym_name(raw, expected):
    assert normalize_gym_name(raw) == expected


def test_suffixes_only_removed_as_whole_words():
    assert normalize_gym_name("Teamwork BJJ") == "teamwork"
    assert normalize_gym_name("Academia Hqx") == "academia hqx"


def test_removal_that_exposes_another_suffix_is_repeated():
    assert normalize_gym_name("Jiu Team Jitsu") == ""


def test_punctuation_keeps_token_boundaries():
    assert normalize_gym_name("Gracie-Barra/Miami") == "gracie barra miami"


def test_custom_suffix_table():
    assert normalize_gym_name("Soul Fighters Club", suffixes=("club",)) == "soul fighters"
    assert normalize_gym_name("Soul Fighters BJJ", suffixes=()) == "soul fighters bjj"


@pytest.mark.parametrize("raw", [
    "Team #1 BJJ",
    "Gracie Barra Miami",
    "Jiu Team Jitsu",
    "  ***  ",
    "",
    "Brazilian Jiu-Jitsu Academy of Team MMA HQ",
    "Ça Va Jiu-Jitsu!!",
])
def test_normalization_is_idempotent(raw):
    once = normalize_gym_name(raw)
    assert normalize_gym_name(once) == once


def test_strip_punctuation_keeps_generic_tokens():
    assert strip_punctuation("BJJ Academy!") == "bjj academy"
