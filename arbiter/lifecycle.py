"""
Case lifecycle: creation, invitation acceptance / rejection and expiry.

Invitation expiry is enforced lazily. There is no scheduler: every read goes
through ``_sweep`` which applies ``expiry_transition`` and commits the change
before the case is handed back, so a stale invitation is resolved the first
time anyone looks at it, and resolving it twice is a no-op.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence

from . import errors
from .models import Acceptance, Case, CaseStatus, PartyIn, SIDES, utcnow
from .repository import Repository

logger = logging.getLogger(__name__)

DEFAULT_PARTIES = [{"side": "A"}, {"side": "B"}]


def expiry_transition(case: Case, now: datetime) -> Optional[Dict[str, object]]:
    """Field changes that expire a stale invitation, or None if nothing to do."""
    if case.acceptance != Acceptance.PENDING or case.expires_at is None:
        return None
    if case.expires_at < now:
        return {"acceptance": Acceptance.EXPIRED, "status": CaseStatus.EXPIRED}
    return None


def _normalize_parties(parties: Optional[Sequence[PartyIn]]) -> List[dict]:
    if not parties:
        return [dict(p) for p in DEFAULT_PARTIES]
    rows = [p.model_dump(exclude_none=True) if isinstance(p, PartyIn) else dict(p) for p in parties]
    if len(rows) != 2 or sorted(str(r.get("side")) for r in rows) != list(SIDES):
        raise errors.ValidationError("parties must be exactly side A and side B")
    return sorted(rows, key=lambda r: r["side"])


class CaseLifecycle:
    def __init__(
        self,
        repo: Repository,
        clock: Callable[[], datetime] = utcnow,
        invite_ttl: timedelta = timedelta(hours=24),
    ):
        self.repo = repo
        self.clock = clock
        self.invite_ttl = invite_ttl

    # ---- reads ----
    def _sweep(self, case: Case) -> Case:
        changes = expiry_transition(case, self.clock())
        if not changes:
            return case
        with self.repo.case_lock(case.id):
            for field, value in changes.items():
                setattr(case, field, value)
            case = self.repo.update_case(case)
        logger.info("Invitation for case %s expired", case.id)
        return case

    def get_case(self, case_id: str) -> Case:
        case = self.repo.get_case(case_id)
        if case is None:
            raise errors.NotFound("Case not found")
        return self._sweep(case)

    def list_cases_for_user(self, user_id: str) -> List[Case]:
        return [self._sweep(c) for c in self.repo.list_cases(user_id)]

    # ---- guards ----
    @staticmethod
    def require_participant(case: Case, user_id: str) -> None:
        if user_id not in (case.participant_ids or []):
            raise errors.Forbidden("not a participant of this case")

    @staticmethod
    def require_viewer(case: Case, user_id: str) -> None:
        if user_id in (case.participant_ids or []) or user_id == case.invited_user_id:
            return
        raise errors.Forbidden("not a participant of this case")

    # ---- transitions ----
    def create_case(
        self,
        owner_id: str,
        topic: str,
        relationship_context: Optional[str] = None,
        parties: Optional[Sequence[PartyIn]] = None,
        invited_user_id: Optional[str] = None,
    ) -> Case:
        if not topic or not topic.strip():
            raise errors.ValidationError("topic is required")
        if invited_user_id is not None and invited_user_id == owner_id:
            raise errors.ValidationError("cannot invite yourself")

        now = self.clock()
        case = Case(
            topic=topic.strip(),
            relationship_context=relationship_context,
            parties=_normalize_parties(parties),
            created_at=now,
            owner_id=owner_id,
            participant_ids=[owner_id],
        )
        if invited_user_id:
            case.invited_user_id = invited_user_id
            case.expires_at = now + self.invite_ttl
            case.status = CaseStatus.PENDING_ACCEPTANCE
            case.acceptance = Acceptance.PENDING
        else:
            case.status = CaseStatus.DRAFT
            case.acceptance = Acceptance.ACCEPTED

        case = self.repo.add_case(case)
        logger.info("Created case %s (status=%s)", case.id, case.status.value)
        return case

    def accept_case(self, case_id: str, user_id: str) -> Case:
        with self.repo.case_lock(case_id):
            case = self.repo.get_case(case_id)
            if case is None:
                raise errors.NotFound("Case not found")
            if case.acceptance == Acceptance.REJECTED:
                raise errors.AlreadyRejected("case was rejected")
            if case.acceptance == Acceptance.ACCEPTED:
                return case
            if case.acceptance == Acceptance.EXPIRED or (
                case.expires_at is not None and case.expires_at < self.clock()
            ):
                case.acceptance = Acceptance.EXPIRED
                case.status = CaseStatus.EXPIRED
                self.repo.update_case(case)
                logger.info("Accept on expired case %s", case_id)
                raise errors.Expired("invitation expired")
            if case.invited_user_id != user_id:
                raise errors.Forbidden("only the invited user can accept")

            case.acceptance = Acceptance.ACCEPTED
            case.status = CaseStatus.DRAFT
            participants = list(case.participant_ids or [])
            if user_id not in participants:
                participants.append(user_id)
            case.participant_ids = participants
            case = self.repo.update_case(case)
        logger.info("Case %s accepted by %s", case_id, user_id)
        return case

    def reject_case(self, case_id: str, user_id: str) -> Case:
        with self.repo.case_lock(case_id):
            case = self.repo.get_case(case_id)
            if case is None:
                raise errors.NotFound("Case not found")
            if case.invited_user_id != user_id:
                raise errors.Forbidden("only the invited user can reject")
            # only a pending invitation can be rejected
            if case.acceptance == Acceptance.REJECTED:
                return case
            if case.acceptance == Acceptance.ACCEPTED:
                raise errors.AlreadyAccepted("case was already accepted")
            if case.acceptance == Acceptance.EXPIRED or (
                case.expires_at is not None and case.expires_at < self.clock()
            ):
                case.acceptance = Acceptance.EXPIRED
                case.status = CaseStatus.EXPIRED
                self.repo.update_case(case)
                raise errors.Expired("invitation expired")
            case.acceptance = Acceptance.REJECTED
            case.status = CaseStatus.CLOSED
            case = self.repo.update_case(case)
        logger.info("Case %s rejected by %s", case_id, user_id)
        return case

    def set_status(self, case: Case, status: CaseStatus) -> Case:
        case.status = status
        return self.repo.update_case(case)
