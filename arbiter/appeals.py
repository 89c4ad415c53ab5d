import logging
from typing import Optional, Sequence

from . import errors
from .hearings import HearingEngine, validate_evidence, validate_statements
from .lifecycle import CaseLifecycle
from .models import CaseStatus, EvidenceIn, Hearing, StatementIn
from .repository import Repository

logger = logging.getLogger(__name__)


class AppealController:
    """Opens the next hearing of a case after a verdict.

    Cases keep a single timeline: the new round is always the case's highest
    round + 1, whichever hearing was appealed. Submissions are not carried
    over from the appealed hearing; only what is passed here is stored.
    """

    def __init__(
        self,
        repo: Repository,
        lifecycle: CaseLifecycle,
        hearings: HearingEngine,
        max_rounds: int = 0,
    ):
        self.repo = repo
        self.lifecycle = lifecycle
        self.hearings = hearings
        # 0 means unlimited
        self.max_rounds = max_rounds

    def appeal(
        self,
        case_id: str,
        hearing_id: str,
        user_id: str,
        statements: Optional[Sequence[StatementIn]] = None,
        evidence: Optional[Sequence[EvidenceIn]] = None,
    ) -> Hearing:
        case = self.lifecycle.get_case(case_id)
        self.lifecycle.require_participant(case, user_id)
        if case.status in (CaseStatus.EXPIRED, CaseStatus.CLOSED):
            raise errors.CaseNotAccepted(f"case is {case.status.value}")
        appealed = self.hearings.find_hearing(case, hearing_id)
        if statements is not None:
            validate_statements(statements, required=False)
        if evidence is not None:
            validate_evidence(evidence)

        with self.repo.case_lock(case.id):
            if self.max_rounds and self.rounds_used(case.id) >= self.max_rounds:
                raise errors.AppealLimitReached(f"case already has {self.max_rounds} rounds")
            hearing = self.hearings.open_hearing(case, self.hearings.next_round(case.id))
            if statements is not None:
                self.hearings.store_statements(hearing.id, statements)
            if evidence is not None:
                self.hearings.store_evidence(hearing.id, evidence)
            self.lifecycle.set_status(case, CaseStatus.APPEALED)

        logger.info(
            "Appeal on hearing %s opened round %s (hearing %s) for case %s",
            appealed.id, hearing.round, hearing.id, case.id,
        )
        return hearing

    def rounds_used(self, case_id: str) -> int:
        return self.repo.max_round(case_id)
