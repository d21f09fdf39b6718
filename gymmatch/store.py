"""
Persistence contract used by the registry, review workflow and venue cache.

The core only needs point lookups, a prefix query over the lowercase master
gym search key and conditional puts. InMemoryGymStore backs the batch job and
the tests; a database-backed store implements the same interface.
"""
import copy
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from gymmatch.errors import ConflictError
from gymmatch.models import (
    GymSubmission,
    MasterGym,
    Org,
    PendingMatch,
    ReviewStatus,
    SourceGym,
    VenueCacheEntry,
)


class GymStore(ABC):

    # Source gyms
    @abstractmethod
    def get_source_gym(self, org: Org, external_id: str) -> Optional[SourceGym]: ...

    @abstractmethod
    def put_source_gym(self, gym: SourceGym) -> None: ...

    @abstractmethod
    def list_source_gyms(self, org: Optional[Org] = None) -> List[SourceGym]: ...

    # Master gyms
    @abstractmethod
    def get_master_gym(self, master_gym_id: str) -> Optional[MasterGym]: ...

    @abstractmethod
    def put_master_gym(self, gym: MasterGym, if_absent: bool = False) -> None:
        """Store a master gym. With if_absent, raise ConflictError when the id exists."""

    @abstractmethod
    def query_master_gyms_by_prefix(self, prefix: str, limit: int) -> List[MasterGym]: ...

    @abstractmethod
    def list_master_gyms(self) -> List[MasterGym]: ...

    # Review items
    @abstractmethod
    def get_pending_match(self, match_id: str) -> Optional[PendingMatch]: ...

    @abstractmethod
    def put_pending_match(self, match: PendingMatch) -> None: ...

    @abstractmethod
    def list_pending_matches(self, status: Optional[ReviewStatus] = None) -> List[PendingMatch]: ...

    @abstractmethod
    def get_gym_submission(self, submission_id: str) -> Optional[GymSubmission]: ...

    @abstractmethod
    def put_gym_submission(self, submission: GymSubmission) -> None: ...

    @abstractmethod
    def list_gym_submissions(self, status: Optional[ReviewStatus] = None) -> List[GymSubmission]: ...

    # Venue cache
    @abstractmethod
    def get_venue(self, lookup_key: str) -> Optional[VenueCacheEntry]: ...

    @abstractmethod
    def put_venue(self, entry: VenueCacheEntry) -> None: ...

    @abstractmethod
    def list_venues(self) -> List[VenueCacheEntry]: ...


class InMemoryGymStore(GymStore):
    """Dict-backed store. Returns copies so callers cannot mutate stored records."""

    def __init__(self):
        self._source_gyms: Dict[Tuple[Org, str], SourceGym] = {}
        self._master_gyms: Dict[str, MasterGym] = {}
        self._pending_matches: Dict[str, PendingMatch] = {}
        self._submissions: Dict[str, GymSubmission] = {}
        self._venues: Dict[str, VenueCacheEntry] = {}

    def get_source_gym(self, org, external_id):
        gym = self._source_gyms.get((Org(org), str(external_id)))
        return copy.deepcopy(gym) if gym else None

    def put_source_gym(self, gym):
        self._source_gyms[(Org(gym.org), str(gym.external_id))] = copy.deepcopy(gym)

    def list_source_gyms(self, org=None):
        return [
            copy.deepcopy(gym)
            for (gym_org, _), gym in self._source_gyms.items()
            if org is None or gym_org == Org(org)
        ]

    def get_master_gym(self, master_gym_id):
        gym = self._master_gyms.get(master_gym_id)
        return copy.deepcopy(gym) if gym else None

    def put_master_gym(self, gym, if_absent=False):
        if if_absent and gym.id in self._master_gyms:
            raise ConflictError(f"Master gym {gym.id} already exists")
        self._master_gyms[gym.id] = copy.deepcopy(gym)

    def query_master_gyms_by_prefix(self, prefix, limit):
        hits = sorted(
            (gym for gym in self._master_gyms.values() if gym.search_key.startswith(prefix)),
            key=lambda gym: (gym.search_key, gym.id),
        )
        return [copy.deepcopy(gym) for gym in hits[:limit]]

    def list_master_gyms(self):
        return [copy.deepcopy(gym) for gym in self._master_gyms.values()]

    def get_pending_match(self, match_id):
        match = self._pending_matches.get(match_id)
        return copy.deepcopy(match) if match else None

    def put_pending_match(self, match):
        self._pending_matches[match.id] = copy.deepcopy(match)

    def list_pending_matches(self, status=None):
        return [
            copy.deepcopy(m)
            for m in self._pending_matches.values()
            if status is None or m.status == status
        ]

    def get_gym_submission(self, submission_id):
        submission = self._submissions.get(submission_id)
        return copy.deepcopy(submission) if submission else None

    def put_gym_submission(self, submission):
        self._submissions[submission.id] = copy.deepcopy(submission)

    def list_gym_submissions(self, status=None):
        return [
            copy.deepcopy(s)
            for s in self._submissions.values()
            if status is None or s.status == status
        ]

    def get_venue(self, lookup_key):
        entry = self._venues.get(lookup_key)
        return copy.deepcopy(entry) if entry else None

    def put_venue(self, entry):
        self._venues[entry.lookup_key] = copy.deepcopy(entry)

    def list_venues(self):
        return [copy.deepcopy(entry) for entry in self._venues.values()]
