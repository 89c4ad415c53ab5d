import logging
import math
from datetime import datetime
from typing import Any, Callable, List

from . import errors
from .models import CaseStatus, HearingStatus, Verdict, utcnow
from .repository import Repository

logger = logging.getLogger(__name__)


def _number(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        num = float(value)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if math.isnan(num) else num


def _clamp(value: Any, low: float, high: float) -> float:
    return min(high, max(low, _number(value)))


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _text_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [_text(v) for v in value if v is not None]


def _section(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def normalize_verdict(
    raw: Any,
    hearing_id: str,
    raw_payload: Any = None,
    clock: Callable[[], datetime] = utcnow,
) -> Verdict:
    """
    Turn whatever the adjudicator returned into a well-formed Verdict.

    Percentages are clamped to [0, 100] each, independently; they are not
    rescaled to sum to 100. Confidence is clamped to [0, 1]. Missing text
    becomes "" and missing lists become []. Never raises.
    """
    raw = _section(raw)
    score = _section(raw.get("score"))
    reasoning = _section(raw.get("reasoning"))
    advice = _section(raw.get("advice"))

    return Verdict(
        hearing_id=hearing_id,
        score={
            "partyA_pct": _clamp(score.get("partyA_pct"), 0, 100),
            "partyB_pct": _clamp(score.get("partyB_pct"), 0, 100),
            "confidence": _clamp(score.get("confidence"), 0, 1),
        },
        summary=_text(raw.get("summary")),
        reasoning={
            "facts": _text(reasoning.get("facts")),
            "fairness_checks": _text_list(reasoning.get("fairness_checks")),
            "emotion_considerations": _text(reasoning.get("emotion_considerations")),
            "assumptions": _text_list(reasoning.get("assumptions")),
            "missing_info": _text_list(reasoning.get("missing_info")),
        },
        advice={
            "together": _text_list(advice.get("together")),
            "forA": _text_list(advice.get("forA")),
            "forB": _text_list(advice.get("forB")),
        },
        raw_agent_payload=raw_payload,
        created_at=clock(),
    )


def record_verdict(repo: Repository, verdict: Verdict) -> Verdict:
    """Store the verdict for its hearing (replacing any earlier one), mark the
    hearing judged and the case decided."""
    hearing = repo.get_hearing(verdict.hearing_id)
    if hearing is None:
        raise errors.NotFound("Hearing not found")

    with repo.case_lock(hearing.case_id):
        verdict = repo.upsert_verdict(verdict)
        hearing.status = HearingStatus.JUDGED
        repo.update_hearing(hearing)
        case = repo.get_case(hearing.case_id)
        if case is not None:
            case.status = CaseStatus.DECIDED
            repo.update_case(case)

    logger.info(
        "Recorded verdict for hearing %s (A=%s B=%s confidence=%s)",
        verdict.hearing_id,
        verdict.score.get("partyA_pct"),
        verdict.score.get("partyB_pct"),
        verdict.score.get("confidence"),
    )
    return verdict
