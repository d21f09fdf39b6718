"""
Typed data models for the gym identity resolution pipeline.
All data structures passed between the matchers, registry, sync orchestrator
and venue cache are defined here.
"""
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from gymmatch.errors import ValidationError


class Org(str, Enum):
    """Federations that publish gym data."""
    IBJJF = "IBJJF"
    JJWL = "JJWL"


class MatchDecision(str, Enum):
    """Outcome of classifying a match score."""
    NO_MATCH = "no-match"
    PENDING = "pending"
    AUTO_LINK = "auto-link"


class ReviewStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class GeocodeConfidence(str, Enum):
    HIGH = "high"
    LOW = "low"
    FAILED = "failed"


SOURCE_GYM_ID_RE = re.compile(r"^SRCGYM#(JJWL|IBJJF)#(.+)$")


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def source_gym_key(org: Org, external_id: str) -> str:
    """Build the string form of a source gym reference, e.g. 'SRCGYM#JJWL#123'."""
    return f"SRCGYM#{Org(org).value}#{external_id}"


def parse_source_gym_key(key: str) -> tuple:
    """
    Parse a 'SRCGYM#<org>#<externalId>' reference.

    Returns:
        tuple: (Org, external_id)

    Raises:
        ValidationError: If the key is malformed.
    """
    match = SOURCE_GYM_ID_RE.match(key or "")
    if not match:
        raise ValidationError(f"Invalid source gym id: {key!r}")
    return Org(match.group(1)), match.group(2)


@dataclass
class SourceGym:
    """A gym as reported by one federation's data feed."""
    org: Org
    external_id: str
    name: str
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None
    responsible: Optional[str] = None
    master_gym_id: Optional[str] = None  # weak reference, unset means unresolved
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def key(self) -> str:
        return source_gym_key(self.org, self.external_id)

    def validate(self) -> None:
        """Reject records the matching engine must never see."""
        try:
            self.org = Org(self.org)
        except ValueError:
            raise ValidationError(f"Unknown org {self.org!r} for gym {self.external_id!r}") from None
        if not self.external_id or not str(self.external_id).strip():
            raise ValidationError(f"{self.org.value} gym is missing an external id")
        if not self.name or not self.name.strip():
            raise ValidationError(f"{self.key} has an empty name")


@dataclass
class MasterGym:
    """The canonical, deduplicated gym entity."""
    id: str
    canonical_name: str
    search_key: str
    city: Optional[str] = None
    country: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class MasterGymUpdate:
    """Optional-field update for a master gym. Fields left as None are untouched."""
    canonical_name: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None

    def changes(self) -> Dict[str, str]:
        return {k: v for k, v in self.__dict__.items() if v is not None}


@dataclass
class MatchSignals:
    """Breakdown of how a match score was built."""
    name_similarity: float
    city_boost: float = 0.0
    affiliation_boost: float = 0.0


@dataclass
class ScoredPair:
    score: float
    signals: MatchSignals


@dataclass
class RankedMatch:
    """A comparison target that scored at or above the pending threshold."""
    gym: SourceGym
    score: float
    signals: MatchSignals


@dataclass
class PendingMatch:
    """A proposed source gym -> master gym link awaiting human review."""
    id: str
    source_gym_id: str
    source_gym_name: str
    master_gym_id: str
    master_gym_name: str
    confidence: float
    signals: MatchSignals
    matched_source_gym_id: Optional[str] = None
    status: ReviewStatus = ReviewStatus.PENDING
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class GymSubmission:
    """A free-text gym name entered during onboarding with no master gym match."""
    id: str
    custom_gym_name: str
    submitted_by_user_id: str
    athlete_ids: List[str] = field(default_factory=list)
    status: ReviewStatus = ReviewStatus.PENDING
    master_gym_id: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class GeocodeResult:
    """Result returned by the geocoding collaborator."""
    lat: float
    lng: float
    confidence: GeocodeConfidence
    formatted_address: str


@dataclass
class VenueCacheEntry:
    """Memoized geocode result keyed by the normalized (venue, city) pair."""
    venue_id: str
    lookup_key: str
    name: str
    city: str
    country: Optional[str]
    lat: Optional[float]
    lng: Optional[float]
    geocode_confidence: GeocodeConfidence
    manual_override: bool = False
    expires_at: Optional[float] = None  # epoch seconds, only set on failed entries
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class ResolvedVenue:
    lat: Optional[float]
    lng: Optional[float]
    venue_id: Optional[str]
    confidence: GeocodeConfidence


@dataclass
class Tournament:
    """Tournament row as exported by a source fetcher, plus geocoding fields."""
    org: Org
    external_id: str
    name: str
    city: str
    venue: Optional[str] = None
    country: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    venue_id: Optional[str] = None
    geocode_confidence: Optional[GeocodeConfidence] = None


@dataclass
class EnrichmentStats:
    cached: int = 0
    geocoded: int = 0
    failed: int = 0
    low_confidence: int = 0


@dataclass
class SourceSyncResult:
    """Per-federation summary of one sync run."""
    org: Org
    fetched: int = 0
    saved: int = 0
    skipped: int = 0  # already linked before the run
    processed: int = 0
    auto_linked: int = 0
    pending_created: int = 0
    masters_created: int = 0
    duration: float = 0.0
    error: Optional[str] = None


@dataclass
class SyncSummary:
    results: Dict[Org, SourceSyncResult] = field(default_factory=dict)
    duration: float = 0.0

    @property
    def failed_sources(self) -> List[Org]:
        return [org for org, result in self.results.items() if result.error]
