"""
Master gym registry: the canonical gym identities and the weak
source gym -> master gym links that point at them.

Every write derives the lowercase search key from canonical_name inline, so
the prefix index cannot drift from the name.
"""
import uuid
from typing import Iterable, List, Optional, Tuple

from loguru import logger

from gymmatch.errors import ConflictError, NotFoundError, ValidationError
from gymmatch.models import MasterGym, MasterGymUpdate, Org, SourceGym, utc_now
from gymmatch.store import GymStore

# Namespace for master gym ids derived from a source gym key
MASTER_GYM_NAMESPACE = uuid.UUID("6ba7b810-9dad-11d1-80b4-00c04fd430c8")

DEFAULT_SEARCH_LIMIT = 20


def derive_search_key(canonical_name: str) -> str:
    return canonical_name.lower()


def master_gym_id_for_source(gym: SourceGym) -> str:
    """Deterministic master gym id for a gym that founds its own identity."""
    return str(uuid.uuid5(MASTER_GYM_NAMESPACE, gym.key))


class MasterGymRegistry:
    """Create, look up and link canonical gyms on top of a GymStore."""

    def __init__(self, store: GymStore):
        self.store = store

    def _build_master_gym(
        self,
        master_gym_id: str,
        canonical_name: str,
        city: Optional[str] = None,
        country: Optional[str] = None,
        address: Optional[str] = None,
        website: Optional[str] = None,
    ) -> MasterGym:
        if not canonical_name or not canonical_name.strip():
            raise ValidationError("Master gym canonical name cannot be empty")
        now = utc_now()
        return MasterGym(
            id=master_gym_id,
            canonical_name=canonical_name,
            search_key=derive_search_key(canonical_name),
            city=city,
            country=country,
            address=address,
            website=website,
            created_at=now,
            updated_at=now,
        )

    def create_master_gym(
        self,
        canonical_name: str,
        city: Optional[str] = None,
        country: Optional[str] = None,
        address: Optional[str] = None,
        website: Optional[str] = None,
    ) -> MasterGym:
        """
        Create a new master gym with a generated id.

        Args:
            canonical_name (str): Display name; its lowercase form becomes the search key.
            city, country, address, website (Optional[str]): Location and contact details.

        Returns:
            MasterGym: The stored master gym.
        """
        gym = self._build_master_gym(str(uuid.uuid4()), canonical_name, city, country, address, website)
        self.store.put_master_gym(gym, if_absent=True)
        logger.debug(f"Created master gym {gym.id} '{gym.canonical_name}'")
        return gym

    def create_master_gym_for_source(self, source: SourceGym) -> Tuple[MasterGym, bool]:
        """
        Create the master gym founded by an unmatched source gym and link the
        source gym to it.

        The id is derived from the source gym key and written conditionally,
        so two concurrent syncs resolving the same new gym converge on one
        master gym: the loser reads and links to the winner's record.

        Returns:
            Tuple[MasterGym, bool]: The master gym and whether this call created it.
        """
        gym = self._build_master_gym(
            master_gym_id_for_source(source),
            source.name,
            city=source.city,
            country=source.country,
            address=source.address,
            website=source.website,
        )
        created = True
        try:
            self.store.put_master_gym(gym, if_absent=True)
        except ConflictError:
            existing = self.store.get_master_gym(gym.id)
            if existing is None:
                raise
            logger.debug(f"Master gym {gym.id} for {source.key} already exists, reusing it")
            gym, created = existing, False
        self.link_source_gym_to_master(source.org, source.external_id, gym.id)
        return gym, created

    def get_master_gym(self, master_gym_id: str) -> Optional[MasterGym]:
        return self.store.get_master_gym(master_gym_id)

    def require_master_gym(self, master_gym_id: str) -> MasterGym:
        gym = self.store.get_master_gym(master_gym_id)
        if gym is None:
            raise NotFoundError(f"Master gym {master_gym_id} not found")
        return gym

    def search_master_gyms(self, name_prefix: str, limit: int = DEFAULT_SEARCH_LIMIT) -> List[MasterGym]:
        """Case-insensitive prefix search over canonical names."""
        return self.store.query_master_gyms_by_prefix((name_prefix or "").lower(), limit)

    def list_master_gyms(self) -> List[MasterGym]:
        return self.store.list_master_gyms()

    def update_master_gym(self, master_gym_id: str, update: MasterGymUpdate) -> MasterGym:
        """Apply the non-empty fields of an update; a rename re-derives the search key."""
        gym = self.require_master_gym(master_gym_id)
        changes = update.changes()
        if "canonical_name" in changes and not changes["canonical_name"].strip():
            raise ValidationError("Master gym canonical name cannot be empty")
        for name, value in changes.items():
            setattr(gym, name, value)
        gym.search_key = derive_search_key(gym.canonical_name)
        gym.updated_at = utc_now()
        self.store.put_master_gym(gym)
        return gym

    def rename_master_gym(self, master_gym_id: str, canonical_name: str) -> MasterGym:
        return self.update_master_gym(master_gym_id, MasterGymUpdate(canonical_name=canonical_name))

    # Source gyms

    def get_source_gym(self, org: Org, external_id: str) -> Optional[SourceGym]:
        return self.store.get_source_gym(org, external_id)

    def require_source_gym(self, org: Org, external_id: str) -> SourceGym:
        gym = self.store.get_source_gym(org, external_id)
        if gym is None:
            raise NotFoundError(f"Source gym {Org(org).value}#{external_id} not found")
        return gym

    def list_source_gyms(self, org: Optional[Org] = None) -> List[SourceGym]:
        return self.store.list_source_gyms(org)

    def list_source_gyms_for_master(self, master_gym_id: str) -> List[SourceGym]:
        return [gym for gym in self.store.list_source_gyms() if gym.master_gym_id == master_gym_id]

    def upsert_source_gyms(self, gyms: Iterable[SourceGym]) -> int:
        """
        Insert or refresh source gyms by (org, external_id).

        A refreshed record keeps the master_gym_id and created_at of the stored
        one; the feed never decides links.

        Returns:
            int: Number of gyms saved.

        Raises:
            ValidationError: If a record is malformed.
        """
        saved = 0
        for gym in gyms:
            gym.validate()
            existing = self.store.get_source_gym(gym.org, gym.external_id)
            now = utc_now()
            if existing is not None:
                gym.master_gym_id = existing.master_gym_id
                gym.created_at = existing.created_at
            else:
                gym.master_gym_id = None
                gym.created_at = now
            gym.updated_at = now
            self.store.put_source_gym(gym)
            saved += 1
        return saved

    def link_source_gym_to_master(self, org: Org, external_id: str, master_gym_id: str) -> SourceGym:
        """Point a source gym at a master gym. Repeating the same link is a no-op."""
        gym = self.require_source_gym(org, external_id)
        self.require_master_gym(master_gym_id)
        if gym.master_gym_id == master_gym_id:
            return gym
        if gym.master_gym_id:
            logger.info(f"Relinking {gym.key} from {gym.master_gym_id} to {master_gym_id}")
        gym.master_gym_id = master_gym_id
        gym.updated_at = utc_now()
        self.store.put_source_gym(gym)
        return gym

    def unlink_source_gym_from_master(self, org: Org, external_id: str) -> SourceGym:
        """Clear a source gym's link. The master gym is kept even if nothing references it."""
        gym = self.require_source_gym(org, external_id)
        if gym.master_gym_id is None:
            return gym
        gym.master_gym_id = None
        gym.updated_at = utc_now()
        self.store.put_source_gym(gym)
        return gym
