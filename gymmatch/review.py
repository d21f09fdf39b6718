"""
Human review of ambiguous links.

Pending matches come from the sync orchestrator (score in the pending band);
gym submissions come from onboarding (free-text gym name with no master gym).
Each is resolved exactly once: approval links to an existing or newly created
master gym, rejection only records the verdict.
"""
import uuid
from typing import List, Optional, Set

from loguru import logger

from gymmatch.errors import NotFoundError, ValidationError
from gymmatch.models import (
    GymSubmission,
    MasterGym,
    PendingMatch,
    RankedMatch,
    ReviewStatus,
    SourceGym,
    parse_source_gym_key,
    utc_now,
)
from gymmatch.registry import MasterGymRegistry

DEFAULT_LIST_LIMIT = 50


class ReviewService:

    def __init__(self, registry: MasterGymRegistry):
        self.registry = registry
        self.store = registry.store

    # Pending matches

    def create_pending_match(self, source: SourceGym, match: RankedMatch, master: MasterGym) -> PendingMatch:
        now = utc_now()
        pending = PendingMatch(
            id=str(uuid.uuid4()),
            source_gym_id=source.key,
            source_gym_name=source.name,
            master_gym_id=master.id,
            master_gym_name=master.canonical_name,
            confidence=match.score,
            signals=match.signals,
            matched_source_gym_id=match.gym.key,
            created_at=now,
            updated_at=now,
        )
        self.store.put_pending_match(pending)
        return pending

    def find_existing_pending_match(
        self,
        source_gym_id: str,
        master_gym_id: str,
        status: ReviewStatus = ReviewStatus.PENDING,
    ) -> Optional[PendingMatch]:
        """Return the review item for a (source gym, master gym) pair, if one exists with the given status."""
        for match in self.store.list_pending_matches(status):
            if match.source_gym_id == source_gym_id and match.master_gym_id == master_gym_id:
                return match
        return None

    def rejected_master_ids(self, source_gym_id: str) -> Set[str]:
        """Master gyms a reviewer has already ruled out for this source gym."""
        return {
            match.master_gym_id
            for match in self.store.list_pending_matches(ReviewStatus.REJECTED)
            if match.source_gym_id == source_gym_id
        }

    def get_pending_match(self, match_id: str) -> Optional[PendingMatch]:
        return self.store.get_pending_match(match_id)

    def list_pending_matches(
        self, status: ReviewStatus = ReviewStatus.PENDING, limit: Optional[int] = DEFAULT_LIST_LIMIT
    ) -> List[PendingMatch]:
        matches = sorted(self.store.list_pending_matches(ReviewStatus(status)), key=lambda m: m.created_at or "")
        return matches[:limit]

    def _open_pending_match(self, match_id: str, reviewed_by: str) -> PendingMatch:
        if not reviewed_by:
            raise ValidationError("Reviewer identity is required")
        match = self.store.get_pending_match(match_id)
        if match is None:
            raise NotFoundError(f"Pending match {match_id} not found")
        if match.status is not ReviewStatus.PENDING:
            raise ValidationError(f"Pending match {match_id} has already been reviewed")
        return match

    def approve_pending_match(
        self,
        match_id: str,
        reviewed_by: str,
        master_gym_id: Optional[str] = None,
        create_new: bool = False,
    ) -> str:
        """
        Approve a pending match and link its source gym.

        Args:
            match_id (str): Pending match to approve.
            reviewed_by (str): Reviewer identity.
            master_gym_id (Optional[str]): Link to this master gym instead of the proposed one.
            create_new (bool): Create a new master gym named after the source gym.

        Returns:
            str: Id of the master gym the source gym is now linked to.
        """
        if create_new and master_gym_id:
            raise ValidationError("Pass either master_gym_id or create_new, not both")
        match = self._open_pending_match(match_id, reviewed_by)
        org, external_id = parse_source_gym_key(match.source_gym_id)

        if create_new:
            source = self.registry.require_source_gym(org, external_id)
            master, _ = self.registry.create_master_gym_for_source(source)
            target_id = master.id
        else:
            target_id = master_gym_id or match.master_gym_id
            self.registry.link_source_gym_to_master(org, external_id, target_id)

        self._close(match, ReviewStatus.APPROVED, reviewed_by)
        logger.info(f"Pending match {match_id} approved by {reviewed_by}: {match.source_gym_id} -> {target_id}")
        return target_id

    def reject_pending_match(self, match_id: str, reviewed_by: str) -> PendingMatch:
        match = self._open_pending_match(match_id, reviewed_by)
        self._close(match, ReviewStatus.REJECTED, reviewed_by)
        logger.info(f"Pending match {match_id} rejected by {reviewed_by}")
        return match

    def _close(self, item, status: ReviewStatus, reviewed_by: str) -> None:
        now = utc_now()
        item.status = status
        item.reviewed_by = reviewed_by
        item.reviewed_at = now
        item.updated_at = now
        if isinstance(item, PendingMatch):
            self.store.put_pending_match(item)
        else:
            self.store.put_gym_submission(item)

    # Gym submissions

    def create_gym_submission(
        self, custom_gym_name: str, submitted_by_user_id: str, athlete_ids: Optional[List[str]] = None
    ) -> GymSubmission:
        if not custom_gym_name or not custom_gym_name.strip():
            raise ValidationError("Gym name is required")
        now = utc_now()
        submission = GymSubmission(
            id=str(uuid.uuid4()),
            custom_gym_name=custom_gym_name.strip(),
            submitted_by_user_id=submitted_by_user_id,
            athlete_ids=list(athlete_ids or []),
            created_at=now,
            updated_at=now,
        )
        self.store.put_gym_submission(submission)
        return submission

    def list_gym_submissions(
        self, status: ReviewStatus = ReviewStatus.PENDING, limit: Optional[int] = DEFAULT_LIST_LIMIT
    ) -> List[GymSubmission]:
        submissions = sorted(self.store.list_gym_submissions(ReviewStatus(status)), key=lambda s: s.created_at or "")
        return submissions[:limit]

    def _open_submission(self, submission_id: str, reviewed_by: str) -> GymSubmission:
        if not reviewed_by:
            raise ValidationError("Reviewer identity is required")
        submission = self.store.get_gym_submission(submission_id)
        if submission is None:
            raise NotFoundError(f"Gym submission {submission_id} not found")
        if submission.status is not ReviewStatus.PENDING:
            raise ValidationError(f"Gym submission {submission_id} has already been reviewed")
        return submission

    def approve_gym_submission(
        self,
        submission_id: str,
        reviewed_by: str,
        master_gym_id: Optional[str] = None,
        create_new: bool = False,
    ) -> str:
        """Approve a submission by linking it to an existing master gym or a new one named after it."""
        submission = self._open_submission(submission_id, reviewed_by)
        if create_new:
            master_gym_id = self.registry.create_master_gym(submission.custom_gym_name).id
        elif master_gym_id:
            self.registry.require_master_gym(master_gym_id)
        else:
            raise ValidationError("Either master_gym_id or create_new must be provided")

        submission.master_gym_id = master_gym_id
        self._close(submission, ReviewStatus.APPROVED, reviewed_by)
        logger.info(f"Gym submission {submission_id} approved by {reviewed_by} -> {master_gym_id}")
        return master_gym_id

    def reject_gym_submission(self, submission_id: str, reviewed_by: str) -> GymSubmission:
        submission = self._open_submission(submission_id, reviewed_by)
        self._close(submission, ReviewStatus.REJECTED, reviewed_by)
        return submission
