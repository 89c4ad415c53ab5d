"""
Hearing engine: per-round submissions and adjudication.

Round numbers come from a case-level counter (highest existing round + 1)
computed under the repository's per-case lock. A caller may pass an explicit
round; it is stored as given and not checked against the sequence.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from fastapi.concurrency import run_in_threadpool

from . import errors, files
from .adjudicator import Adjudicator, JudgeRequest
from .lifecycle import CaseLifecycle
from .models import (
    Acceptance,
    Case,
    CaseStatus,
    EVIDENCE_TYPES,
    Evidence,
    EvidenceIn,
    Hearing,
    HearingStatus,
    SIDES,
    Statement,
    StatementIn,
    Verdict,
    utcnow,
)
from .repository import Repository
from .verdicts import record_verdict

logger = logging.getLogger(__name__)

NOTES_LIMIT = 4000


def _check_side(side: str) -> None:
    if side not in SIDES:
        raise errors.ValidationError(f"side must be one of {', '.join(SIDES)}")


def validate_statements(statements: Sequence[StatementIn], required: bool = True) -> None:
    if required and not statements:
        raise errors.ValidationError("at least one statement is required")
    seen = set()
    for s in statements:
        _check_side(s.side)
        if s.side in seen:
            raise errors.ValidationError(f"more than one statement for side {s.side}")
        seen.add(s.side)
        if not s.narrative or not s.narrative.strip():
            raise errors.ValidationError("statement narrative is required")


def validate_evidence(evidence: Sequence[EvidenceIn]) -> None:
    for e in evidence:
        _check_side(e.side)
        if e.type not in EVIDENCE_TYPES:
            raise errors.ValidationError(f"evidence type must be one of {', '.join(EVIDENCE_TYPES)}")
        if not e.content_or_url or not e.content_or_url.strip():
            raise errors.ValidationError("evidence content is required")


class HearingEngine:
    def __init__(
        self,
        repo: Repository,
        lifecycle: CaseLifecycle,
        adjudicator: Adjudicator,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repo = repo
        self.lifecycle = lifecycle
        self.adjudicator = adjudicator
        self.clock = clock

    # ---- helpers shared with appeals ----
    def next_round(self, case_id: str) -> int:
        return self.repo.max_round(case_id) + 1

    def open_hearing(self, case: Case, round: int) -> Hearing:
        return self.repo.add_hearing(
            Hearing(case_id=case.id, round=round, status=HearingStatus.SUBMITTED, created_at=self.clock())
        )

    def store_statements(self, hearing_id: str, statements: Sequence[StatementIn]) -> None:
        now = self.clock()
        rows = [Statement(hearing_id=hearing_id, created_at=now, **s.model_dump()) for s in statements]
        self.repo.replace_statements(hearing_id, rows)

    def store_evidence(self, hearing_id: str, evidence: Sequence[EvidenceIn]) -> None:
        now = self.clock()
        rows = [Evidence(hearing_id=hearing_id, created_at=now, **e.model_dump()) for e in evidence]
        self.repo.replace_evidence(hearing_id, rows)

    def find_hearing(self, case: Case, hearing_id: str) -> Hearing:
        hearing = self.repo.get_hearing(hearing_id)
        if hearing is None or hearing.case_id != case.id:
            raise errors.NotFound("Hearing not found")
        return hearing

    # ---- operations ----
    def submit_hearing(
        self,
        case_id: str,
        user_id: str,
        statements: Sequence[StatementIn],
        evidence: Sequence[EvidenceIn] = (),
        round: Optional[int] = None,
    ) -> Hearing:
        case = self.lifecycle.get_case(case_id)
        # an invitee learns the case is not open rather than being refused
        self.lifecycle.require_viewer(case, user_id)
        if case.acceptance != Acceptance.ACCEPTED:
            raise errors.CaseNotAccepted("case has not been accepted")
        self.lifecycle.require_participant(case, user_id)
        validate_statements(statements)
        validate_evidence(evidence)
        if round is not None and round < 1:
            raise errors.ValidationError("round must be positive")

        with self.repo.case_lock(case.id):
            hearing = self.open_hearing(case, round if round is not None else self.next_round(case.id))
            self.store_statements(hearing.id, statements)
            self.store_evidence(hearing.id, evidence)
            self.lifecycle.set_status(case, CaseStatus.PENDING_JUDGEMENT)

        logger.info("Submitted hearing %s (case %s, round %s)", hearing.id, case.id, hearing.round)
        return hearing

    def get_hearing(self, case_id: str, hearing_id: str, user_id: str) -> dict:
        case = self.lifecycle.get_case(case_id)
        self.lifecycle.require_participant(case, user_id)
        hearing = self.find_hearing(case, hearing_id)
        return {
            "hearing": hearing,
            "statements": self.repo.get_statements(hearing.id),
            "evidence": self.repo.get_evidence(hearing.id),
        }

    def list_hearings(self, case_id: str, user_id: str) -> List[Hearing]:
        case = self.lifecycle.get_case(case_id)
        self.lifecycle.require_participant(case, user_id)
        return sorted(self.repo.list_hearings(case.id), key=lambda h: h.round)

    def get_verdict(self, case_id: str, hearing_id: str, user_id: str) -> Verdict:
        case = self.lifecycle.get_case(case_id)
        self.lifecycle.require_participant(case, user_id)
        hearing = self.find_hearing(case, hearing_id)
        verdict = self.repo.get_verdict(hearing.id)
        if verdict is None:
            raise errors.NotFound("Verdict not found")
        return verdict

    def build_request(self, case_id: str, hearing_id: str, user_id: str) -> JudgeRequest:
        case = self.lifecycle.get_case(case_id)
        self.lifecycle.require_participant(case, user_id)
        hearing = self.find_hearing(case, hearing_id)

        return JudgeRequest(
            case_id=case.id,
            hearing_id=hearing.id,
            topic=case.topic,
            parties=case.parties,
            statements=self.repo.get_statements(hearing.id),
            evidence=self.repo.get_evidence(hearing.id),
        )

    async def judge_hearing(self, case_id: str, hearing_id: str, user_id: str) -> Verdict:
        # storage calls block, so they run in the threadpool
        request = await run_in_threadpool(self.build_request, case_id, hearing_id, user_id)
        try:
            verdict = await self.adjudicator.judge(request)
        except errors.AdjudicationError as e:
            logger.warning("Adjudication failed for hearing %s: %s", request.hearing_id, e.detail)
            raise
        return await run_in_threadpool(record_verdict, self.repo, verdict)

    def attach_file(
        self,
        case_id: str,
        hearing_id: str,
        user_id: str,
        side: str,
        path: Path,
        filename: str,
    ) -> Evidence:
        case = self.lifecycle.get_case(case_id)
        self.lifecycle.require_participant(case, user_id)
        hearing = self.find_hearing(case, hearing_id)
        _check_side(side)

        text = files.extract_text_from_file(path)
        ev = Evidence(
            hearing_id=hearing.id,
            side=side,
            type="image" if files.is_image(filename) else "other",
            title=filename,
            content_or_url=str(path),
            notes=text[:NOTES_LIMIT] if text else None,
            created_at=self.clock(),
        )
        ev = self.repo.add_evidence(ev)
        logger.info("Attached %s to hearing %s", filename, hearing.id)
        return ev
