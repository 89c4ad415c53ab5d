import asyncio

import pytest

from arbiter import errors
from arbiter.appeals import AppealController
from arbiter.models import CaseStatus, EvidenceIn, HearingStatus, StatementIn

from .conftest import OWNER, STRANGER


@pytest.fixture
def judged(lifecycle, engine, chores_statements):
    case = lifecycle.create_case(OWNER, "chores")
    hearing = engine.submit_hearing(case.id, OWNER, chores_statements)
    verdict = asyncio.run(engine.judge_hearing(case.id, hearing.id, OWNER))
    return case, hearing, verdict


class TestAppeal:

    def test_opens_next_round(self, appeals, lifecycle, judged):
        case, hearing, _ = judged
        new = appeals.appeal(case.id, hearing.id, OWNER)
        assert new.round == hearing.round + 1
        assert new.status == HearingStatus.SUBMITTED
        assert lifecycle.get_case(case.id).status == CaseStatus.APPEALED

    def test_prior_verdict_untouched(self, appeals, engine, judged):
        case, hearing, verdict = judged
        appeals.appeal(case.id, hearing.id, OWNER, statements=[StatementIn(side="A", narrative="new")])
        kept = engine.get_verdict(case.id, hearing.id, OWNER)
        assert kept.score == verdict.score
        assert kept.summary == verdict.summary

    def test_submissions_not_carried_forward(self, appeals, repo, judged):
        case, hearing, _ = judged
        new = appeals.appeal(case.id, hearing.id, OWNER)
        assert repo.get_statements(new.id) == []
        assert repo.get_evidence(new.id) == []
        assert len(repo.get_statements(hearing.id)) == 2

    def test_supplied_submissions_stored(self, appeals, repo, judged):
        case, hearing, _ = judged
        new = appeals.appeal(
            case.id,
            hearing.id,
            OWNER,
            statements=[StatementIn(side="B", narrative="I cooked twice")],
            evidence=[EvidenceIn(side="B", content_or_url="photo of dinner", type="image")],
        )
        assert [s.narrative for s in repo.get_statements(new.id)] == ["I cooked twice"]
        assert [e.type for e in repo.get_evidence(new.id)] == ["image"]

    def test_appeal_on_old_hearing_uses_latest_round(self, appeals, judged):
        case, first, _ = judged
        appeals.appeal(case.id, first.id, OWNER)
        third = appeals.appeal(case.id, first.id, OWNER)
        assert third.round == 3

    def test_non_participant_forbidden(self, appeals, judged):
        case, hearing, _ = judged
        with pytest.raises(errors.Forbidden):
            appeals.appeal(case.id, hearing.id, STRANGER)

    def test_hearing_from_other_case(self, appeals, lifecycle, judged):
        _, hearing, _ = judged
        other = lifecycle.create_case(OWNER, "money")
        with pytest.raises(errors.NotFound):
            appeals.appeal(other.id, hearing.id, OWNER)

    def test_unknown_case(self, appeals, judged):
        _, hearing, _ = judged
        with pytest.raises(errors.NotFound):
            appeals.appeal("missing", hearing.id, OWNER)

    def test_invalid_statement_rejected(self, appeals, repo, judged):
        case, hearing, _ = judged
        with pytest.raises(errors.ValidationError):
            appeals.appeal(case.id, hearing.id, OWNER, statements=[StatementIn(side="A", narrative="")])
        assert len(repo.list_hearings(case.id)) == 1

    def test_one_statement_per_side(self, appeals, repo, judged):
        case, hearing, _ = judged
        twice = [StatementIn(side="B", narrative="one"), StatementIn(side="B", narrative="two")]
        with pytest.raises(errors.ValidationError):
            appeals.appeal(case.id, hearing.id, OWNER, statements=twice)
        assert len(repo.list_hearings(case.id)) == 1

    @pytest.mark.parametrize("status", [CaseStatus.CLOSED, CaseStatus.EXPIRED])
    def test_terminal_case_cannot_be_appealed(self, appeals, lifecycle, repo, judged, status):
        case, hearing, _ = judged
        lifecycle.set_status(repo.get_case(case.id), status)
        with pytest.raises(errors.CaseNotAccepted):
            appeals.appeal(case.id, hearing.id, OWNER)
        assert repo.get_case(case.id).status == status
        assert len(repo.list_hearings(case.id)) == 1


class TestRoundCap:

    @pytest.fixture
    def capped(self, repo, lifecycle, engine):
        return AppealController(repo, lifecycle, engine, max_rounds=2)

    def test_stops_at_cap(self, capped, repo, judged):
        case, hearing, _ = judged
        assert capped.appeal(case.id, hearing.id, OWNER).round == 2
        with pytest.raises(errors.AppealLimitReached):
            capped.appeal(case.id, hearing.id, OWNER)
        assert len(repo.list_hearings(case.id)) == 2

    def test_authorization_checked_before_cap(self, capped, judged):
        case, hearing, _ = judged
        capped.appeal(case.id, hearing.id, OWNER)
        with pytest.raises(errors.Forbidden):
            capped.appeal(case.id, hearing.id, STRANGER)


class TestEndToEnd:

    def test_chores_dispute(self, lifecycle, engine, appeals, repo):
        case = lifecycle.create_case(OWNER, "chores")
        hearing = engine.submit_hearing(
            case.id,
            OWNER,
            [StatementIn(side="A", narrative="I did dishes"), StatementIn(side="B", narrative="I cooked")],
        )
        assert hearing.round == 1

        verdict = asyncio.run(engine.judge_hearing(case.id, hearing.id, OWNER))
        assert 0 <= verdict.score["partyA_pct"] <= 100
        assert 0 <= verdict.score["partyB_pct"] <= 100
        assert repo.get_hearing(hearing.id).status == HearingStatus.JUDGED

        second = appeals.appeal(
            case.id,
            hearing.id,
            OWNER,
            statements=[
                StatementIn(side="A", narrative="I also took out the trash every day"),
                StatementIn(side="B", narrative="I cooked"),
            ],
        )
        assert second.round == 2
        assert second.status == HearingStatus.SUBMITTED
        assert engine.get_verdict(case.id, hearing.id, OWNER).hearing_id == hearing.id
        with pytest.raises(errors.NotFound):
            engine.get_verdict(case.id, second.id, OWNER)

        # judging the appeal decides the case again
        asyncio.run(engine.judge_hearing(case.id, second.id, OWNER))
        assert lifecycle.get_case(case.id).status == CaseStatus.DECIDED
        assert [h.status for h in engine.list_hearings(case.id, OWNER)] == [
            HearingStatus.JUDGED,
            HearingStatus.JUDGED,
        ]
