"""
Storage for cases, hearings, statements, evidence and verdicts.

The services only talk to the ``Repository`` protocol. ``SqlRepository`` is
the SQLModel-backed implementation used by the API, the CLI and the tests.
"""

import threading
import weakref
from contextlib import contextmanager
from typing import Iterator, List, Optional, Protocol, Sequence

from sqlalchemy import delete, func
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine, select

from .models import Case, Evidence, Hearing, Statement, Verdict


class Repository(Protocol):
    def add_case(self, case: Case) -> Case: ...
    def update_case(self, case: Case) -> Case: ...
    def get_case(self, case_id: str) -> Optional[Case]: ...
    def list_cases(self, user_id: Optional[str] = None) -> List[Case]: ...

    def add_hearing(self, hearing: Hearing) -> Hearing: ...
    def update_hearing(self, hearing: Hearing) -> Hearing: ...
    def get_hearing(self, hearing_id: str) -> Optional[Hearing]: ...
    def list_hearings(self, case_id: str) -> List[Hearing]: ...
    def max_round(self, case_id: str) -> int: ...

    def replace_statements(self, hearing_id: str, statements: Sequence[Statement]) -> None: ...
    def get_statements(self, hearing_id: str) -> List[Statement]: ...
    def replace_evidence(self, hearing_id: str, evidence: Sequence[Evidence]) -> None: ...
    def add_evidence(self, evidence: Evidence) -> Evidence: ...
    def get_evidence(self, hearing_id: str) -> List[Evidence]: ...

    def upsert_verdict(self, verdict: Verdict) -> Verdict: ...
    def get_verdict(self, hearing_id: str) -> Optional[Verdict]: ...

    def case_lock(self, case_id: str): ...


def make_engine(url: str, echo: bool = False):
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection, otherwise every session gets an empty db
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=echo, **kwargs)
    return create_engine(url, echo=echo, pool_pre_ping=True)


class SqlRepository:
    def __init__(self, engine):
        self.engine = engine
        # entries go away once no caller holds the lock
        self._locks = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def create_tables(self) -> None:
        SQLModel.metadata.create_all(self.engine)

    def _session(self) -> Session:
        return Session(self.engine, expire_on_commit=False)

    def _save(self, obj):
        with self._session() as sess:
            obj = sess.merge(obj)
            sess.commit()
            sess.refresh(obj)
            return obj

    @contextmanager
    def case_lock(self, case_id: str) -> Iterator[None]:
        """Serialize read-modify-write sequences for one case (in-process only)."""
        with self._locks_guard:
            lock = self._locks.get(case_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[case_id] = lock
        with lock:
            yield

    # ---- cases ----
    def add_case(self, case: Case) -> Case:
        return self._save(case)

    def update_case(self, case: Case) -> Case:
        return self._save(case)

    def get_case(self, case_id: str) -> Optional[Case]:
        with self._session() as sess:
            return sess.get(Case, case_id)

    def list_cases(self, user_id: Optional[str] = None) -> List[Case]:
        with self._session() as sess:
            cases = sess.exec(select(Case).order_by(Case.created_at.desc())).all()
        if user_id is None:
            return list(cases)
        # participant_ids is a JSON column, filter in Python
        return [c for c in cases if user_id in (c.participant_ids or []) or c.invited_user_id == user_id]

    # ---- hearings ----
    def add_hearing(self, hearing: Hearing) -> Hearing:
        return self._save(hearing)

    def update_hearing(self, hearing: Hearing) -> Hearing:
        return self._save(hearing)

    def get_hearing(self, hearing_id: str) -> Optional[Hearing]:
        with self._session() as sess:
            return sess.get(Hearing, hearing_id)

    def list_hearings(self, case_id: str) -> List[Hearing]:
        with self._session() as sess:
            return list(
                sess.exec(
                    select(Hearing).where(Hearing.case_id == case_id).order_by(Hearing.round)
                ).all()
            )

    def max_round(self, case_id: str) -> int:
        with self._session() as sess:
            value = sess.exec(
                select(func.max(Hearing.round)).where(Hearing.case_id == case_id)
            ).one()
        return value or 0

    # ---- statements / evidence ----
    def replace_statements(self, hearing_id: str, statements: Sequence[Statement]) -> None:
        with self._session() as sess:
            sess.execute(delete(Statement).where(Statement.hearing_id == hearing_id))
            sess.add_all(list(statements))
            sess.commit()

    def get_statements(self, hearing_id: str) -> List[Statement]:
        with self._session() as sess:
            return list(sess.exec(select(Statement).where(Statement.hearing_id == hearing_id)).all())

    def replace_evidence(self, hearing_id: str, evidence: Sequence[Evidence]) -> None:
        with self._session() as sess:
            sess.execute(delete(Evidence).where(Evidence.hearing_id == hearing_id))
            sess.add_all(list(evidence))
            sess.commit()

    def add_evidence(self, evidence: Evidence) -> Evidence:
        return self._save(evidence)

    def get_evidence(self, hearing_id: str) -> List[Evidence]:
        with self._session() as sess:
            return list(
                sess.exec(
                    select(Evidence).where(Evidence.hearing_id == hearing_id).order_by(Evidence.created_at)
                ).all()
            )

    # ---- verdicts ----
    def upsert_verdict(self, verdict: Verdict) -> Verdict:
        return self._save(verdict)

    def get_verdict(self, hearing_id: str) -> Optional[Verdict]:
        with self._session() as sess:
            return sess.get(Verdict, hearing_id)
