# gymmatch/config.py
from dataclasses import dataclass, field
from typing import Tuple
from dotenv import load_dotenv
import os

load_dotenv()

# API Keys
GOOGLE_MAPS_API_KEY = os.getenv("GOOGLE_MAPS_API_KEY")

# Runtime parameters
CONCURRENCY = int(os.getenv("CONCURRENCY", 10))
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", 30))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PROGRESS_EVERY = 100

# Matching thresholds (0-100 score scale)
AUTO_LINK_THRESHOLD = float(os.getenv("AUTO_LINK_THRESHOLD", 90))
PENDING_THRESHOLD = float(os.getenv("PENDING_THRESHOLD", 70))
CITY_BOOST = float(os.getenv("CITY_BOOST", 15))
AFFILIATION_BOOST = float(os.getenv("AFFILIATION_BOOST", 0))

# Failed geocodes are cached for a week before being retried
FAILED_GEOCODE_TTL_SECONDS = int(os.getenv("FAILED_GEOCODE_TTL_SECONDS", 7 * 24 * 3600))

# URLs
GEOCODE_URL = os.getenv("GEOCODE_URL", "https://maps.googleapis.com/maps/api/geocode/json")

# File names
IBJJF_GYMS_CSV = os.getenv("IBJJF_GYMS_CSV", "ibjjf_gyms.csv")
JJWL_GYMS_CSV = os.getenv("JJWL_GYMS_CSV", "jjwl_gyms.csv")
TOURNAMENTS_CSV = os.getenv("TOURNAMENTS_CSV", "tournaments.csv")
OUTPUT_DIR = os.getenv("OUTPUT_DIR", "output")

# Generic gym-naming tokens removed before comparing names
GYM_SUFFIXES: Tuple[str, ...] = (
    "bjj",
    "brazilian jiu jitsu",
    "brazilian jiu-jitsu",
    "jiu jitsu",
    "jiu-jitsu",
    "jiujitsu",
    "academy",
    "team",
    "mma",
    "martial arts",
    "training center",
    "hq",
    "headquarters",
)

KNOWN_AFFILIATIONS: Tuple[str, ...] = (
    "gracie barra",
    "alliance",
    "atos",
    "checkmat",
    "carlson gracie",
    "nova uniao",
    "brazilian top team",
    "btt",
    "ribeiro",
    "zenith",
    "unity",
    "renzo gracie",
    "marcelo garcia",
    "arte suave",
    "gracie humaita",
    "gracie academy",
    "10th planet",
    "tenth planet",
)


@dataclass(frozen=True)
class MatchingConfig:
    """
    Tunable knobs shared by the scorer, decision policy, matching service and
    sync orchestrator. Pass a custom instance to override thresholds in tests
    or for a one-off run.
    """
    auto_link_threshold: float = AUTO_LINK_THRESHOLD
    pending_threshold: float = PENDING_THRESHOLD
    city_boost: float = CITY_BOOST
    affiliation_boost: float = AFFILIATION_BOOST
    suffixes: Tuple[str, ...] = field(default=GYM_SUFFIXES)
    affiliations: Tuple[str, ...] = field(default=KNOWN_AFFILIATIONS)
    match_same_org: bool = False

    def __post_init__(self):
        if not 0 <= self.pending_threshold <= self.auto_link_threshold <= 100:
            raise ValueError(
                f"Thresholds must satisfy 0 <= pending ({self.pending_threshold}) "
                f"<= auto-link ({self.auto_link_threshold}) <= 100"
            )

    @classmethod
    def from_env(cls) -> "MatchingConfig":
        """Build a config from the current environment, falling back to module defaults."""
        return cls(
            auto_link_threshold=float(os.getenv("AUTO_LINK_THRESHOLD", AUTO_LINK_THRESHOLD)),
            pending_threshold=float(os.getenv("PENDING_THRESHOLD", PENDING_THRESHOLD)),
            city_boost=float(os.getenv("CITY_BOOST", CITY_BOOST)),
            affiliation_boost=float(os.getenv("AFFILIATION_BOOST", AFFILIATION_BOOST)),
            match_same_org=os.getenv("MATCH_SAME_ORG", "false").lower() == "true",
        )
