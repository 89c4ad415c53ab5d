from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field, Column, JSON
from typing import Optional, List, Dict, Any
from pydantic import BaseModel
from datetime import datetime, timezone
from enum import Enum
import uuid


def utcnow() -> datetime:
    # naive UTC, stored in plain DateTime columns
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return uuid.uuid4().hex


SIDES = ("A", "B")
EVIDENCE_TYPES = ("text", "link", "image", "other")


class CaseStatus(str, Enum):
    PENDING_ACCEPTANCE = "pending_acceptance"
    DRAFT = "draft"
    PENDING_JUDGEMENT = "pending_judgement"
    DECIDED = "decided"
    APPEALED = "appealed"
    EXPIRED = "expired"
    CLOSED = "closed"


class Acceptance(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class HearingStatus(str, Enum):
    SUBMITTED = "submitted"
    JUDGED = "judged"


# ---- Tables ----

class Case(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    topic: str
    relationship_context: Optional[str] = None
    parties: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    status: CaseStatus = CaseStatus.DRAFT
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    owner_id: str = Field(index=True)
    participant_ids: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    invited_user_id: Optional[str] = Field(default=None, index=True)
    expires_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    acceptance: Acceptance = Acceptance.ACCEPTED


class Hearing(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    case_id: str = Field(index=True)
    round: int
    status: HearingStatus = HearingStatus.SUBMITTED
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)


class Statement(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    hearing_id: str = Field(index=True)
    side: str
    narrative: str
    feelings: Optional[str] = None
    context: Optional[str] = None
    requests: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)


class Evidence(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    hearing_id: str = Field(index=True)
    side: str
    type: str = "text"
    title: Optional[str] = None
    content_or_url: str
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)


class Verdict(SQLModel, table=True):
    hearing_id: str = Field(primary_key=True)
    score: Dict[str, float] = Field(default_factory=dict, sa_column=Column(JSON))
    summary: str = ""
    reasoning: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    advice: Dict[str, List[str]] = Field(default_factory=dict, sa_column=Column(JSON))
    raw_agent_payload: Optional[Any] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)


# ---- Request payloads ----

class PartyIn(BaseModel):
    side: str
    name: Optional[str] = None
    baseline_state: Optional[str] = None


class StatementIn(BaseModel):
    side: str
    narrative: str
    feelings: Optional[str] = None
    context: Optional[str] = None
    requests: List[str] = []


class EvidenceIn(BaseModel):
    side: str
    type: str = "text"
    title: Optional[str] = None
    content_or_url: str
    notes: Optional[str] = None


class CaseCreate(BaseModel):
    topic: str
    relationship_context: Optional[str] = None
    parties: Optional[List[PartyIn]] = None
    invited_user_id: Optional[str] = None


class HearingCreate(BaseModel):
    round: Optional[int] = None
    statements: List[StatementIn] = []
    evidence: List[EvidenceIn] = []


class AppealCreate(BaseModel):
    statements: Optional[List[StatementIn]] = None
    evidence: Optional[List[EvidenceIn]] = None
