from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from arbiter.adjudicator import FallbackAdjudicator
from arbiter.appeals import AppealController
from arbiter.config import Settings
from arbiter.hearings import HearingEngine
from arbiter.lifecycle import CaseLifecycle
from arbiter.main import create_app
from arbiter.models import StatementIn
from arbiter.repository import SqlRepository, make_engine

OWNER = "user-owner"
INVITEE = "user-invitee"
STRANGER = "user-stranger"


class FakeClock:
    def __init__(self, now=None):
        self.now = now or datetime(2024, 5, 1, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def repo():
    repo = SqlRepository(make_engine("sqlite://"))
    repo.create_tables()
    return repo


@pytest.fixture
def lifecycle(repo, clock):
    return CaseLifecycle(repo, clock=clock)


@pytest.fixture
def engine(repo, lifecycle, clock):
    return HearingEngine(repo, lifecycle, FallbackAdjudicator(), clock=clock)


@pytest.fixture
def appeals(repo, lifecycle, engine):
    return AppealController(repo, lifecycle, engine)


@pytest.fixture
def chores_statements():
    return [
        StatementIn(side="A", narrative="I did dishes"),
        StatementIn(side="B", narrative="I cooked"),
    ]


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url="sqlite://",
        judge_mock=True,
        upload_dir=str(tmp_path / "uploads"),
    )


@pytest.fixture
def app(repo, settings, clock):
    app = create_app(repo=repo, adjudicator=FallbackAdjudicator(), settings=settings)
    app.state.services.lifecycle.clock = clock
    app.state.services.hearings.clock = clock
    return app


@pytest.fixture
def client(app):
    """Test client acting as the case owner"""
    with TestClient(app) as c:
        c.headers.update({"X-User-Id": OWNER})
        yield c


def as_user(user_id):
    return {"X-User-Id": user_id}
