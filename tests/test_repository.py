import gc
from datetime import datetime, timedelta

from arbiter.models import Acceptance, Case, CaseStatus, Hearing
from arbiter.repository import SqlRepository, make_engine

from .conftest import OWNER


def test_naive_timestamps_round_trip(repo):
    created = datetime(2024, 5, 1, 12, 0, 0)
    case = repo.add_case(
        Case(
            topic="chores",
            owner_id=OWNER,
            participant_ids=[OWNER],
            created_at=created,
            expires_at=created + timedelta(hours=24),
            status=CaseStatus.PENDING_ACCEPTANCE,
            acceptance=Acceptance.PENDING,
        )
    )

    stored = repo.get_case(case.id)
    assert stored.created_at == created
    assert stored.expires_at == created + timedelta(hours=24)
    assert stored.expires_at.tzinfo is None


def test_file_database_round_trip(tmp_path):
    repo = SqlRepository(make_engine(f"sqlite:///{tmp_path / 'arbiter.db'}"))
    repo.create_tables()
    hearing = repo.add_hearing(Hearing(case_id="c1", round=1, created_at=datetime(2024, 5, 1)))
    assert repo.get_hearing(hearing.id).created_at == datetime(2024, 5, 1)
    assert repo.max_round("c1") == 1


def test_case_lock_is_reentrant(repo):
    with repo.case_lock("c1"):
        with repo.case_lock("c1"):
            assert "c1" in repo._locks


def test_case_locks_released_when_unused(repo):
    for i in range(10):
        with repo.case_lock(f"case-{i}"):
            pass
    gc.collect()
    assert len(repo._locks) == 0
