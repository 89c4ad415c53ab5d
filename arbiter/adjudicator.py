"""
Adjudication service: turns a hearing's submissions into a Verdict.

Two interchangeable implementations sit behind the ``Adjudicator`` protocol:

* ``OpenRouterAdjudicator`` asks a chat model for a JSON verdict.
* ``FallbackAdjudicator`` splits the score by how much each side wrote. It is
  what runs when no model is configured, and it is a normal success path.

``build_adjudicator`` picks one from settings; nothing else branches on it.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol

import requests
from fastapi.concurrency import run_in_threadpool

from . import errors, prompts
from .config import Settings
from .models import Evidence, Statement, Verdict
from .verdicts import normalize_verdict

logger = logging.getLogger(__name__)

EXCERPT_CHARS = 1500


@dataclass
class JudgeRequest:
    case_id: str
    hearing_id: str
    topic: str
    parties: List[Dict[str, Any]]
    statements: List[Statement]
    evidence: List[Evidence] = field(default_factory=list)


class Adjudicator(Protocol):
    async def judge(self, request: JudgeRequest) -> Verdict: ...


# -------------------------------
# Build context for the prompt
# -------------------------------
def build_context(request: JudgeRequest) -> str:
    parties = []
    for p in request.parties:
        label = p.get("side", "?")
        if p.get("name"):
            label += f" ({p['name']})"
        if p.get("baseline_state"):
            label += f" baseline: {p['baseline_state']}"
        parties.append(label)

    lines = [
        f"TOPIC: {request.topic}",
        f"PARTIES: {'; '.join(parties)}",
        "",
        "STATEMENTS:",
    ]
    for s in request.statements:
        lines.append(
            f"{s.side}: facts=\"{s.narrative}\" feelings=\"{s.feelings or ''}\" "
            f"context=\"{s.context or ''}\" requests=\"{', '.join(s.requests or [])}\""
        )

    lines.append("")
    lines.append("EVIDENCE:")
    if not request.evidence:
        lines.append("No evidence provided.")
    for i, e in enumerate(request.evidence, start=1):
        excerpt = (e.notes or "")[:EXCERPT_CHARS]
        lines.append(f"[E{i}] {e.side} {e.type} {e.title or ''} {e.content_or_url} {excerpt}".rstrip())
    return "\n".join(lines)


def _word_count(text: str) -> int:
    return len(text.split())


class FallbackAdjudicator:
    """Deterministic stand-in used when no adjudication model is configured."""

    confidence = 0.3

    async def judge(self, request: JudgeRequest) -> Verdict:
        total = sum(_word_count(s.narrative) for s in request.statements) or 1
        a_words = sum(_word_count(s.narrative) for s in request.statements if s.side == "A") or total / 2
        party_a = int(a_words / total * 100 + 0.5)

        raw = {
            "score": {
                "partyA_pct": party_a,
                "partyB_pct": 100 - party_a,
                "confidence": self.confidence,
            },
            "summary": prompts.FALLBACK_SUMMARY,
            "reasoning": {
                "facts": prompts.FALLBACK_FACTS,
                "fairness_checks": prompts.FALLBACK_FAIRNESS,
                "emotion_considerations": prompts.FALLBACK_EMOTIONS,
                "assumptions": [],
                "missing_info": [],
            },
            "advice": {
                "together": prompts.FALLBACK_TOGETHER,
                "forA": prompts.FALLBACK_FOR_A,
                "forB": prompts.FALLBACK_FOR_B,
            },
        }
        return normalize_verdict(raw, request.hearing_id, raw_payload={"mode": "fallback"})


class OpenRouterAdjudicator:
    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://openrouter.ai/api/v1/chat/completions",
        timeout: int = 60,
        max_tokens: int = 1200,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout = timeout
        self.max_tokens = max_tokens

    def _call_chat(self, messages) -> dict:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self.model,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "temperature": 0.2,
            "response_format": {"type": "json_object"},
        }
        try:
            resp = requests.post(self.base_url, headers=headers, json=payload, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise errors.AdjudicationUnavailable(f"adjudicator call failed: {e}") from e
        try:
            return resp.json()
        except ValueError as e:
            raise errors.AdjudicationMalformed("adjudicator response is not JSON") from e

    @staticmethod
    def _extract(body: dict) -> Dict[str, Any]:
        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if not isinstance(content, str) or not content.strip():
            raise errors.AdjudicationMalformed("no completion returned")
        try:
            parsed = json.loads(content.strip())
        except ValueError as e:
            raise errors.AdjudicationMalformed("completion is not valid JSON") from e
        if not isinstance(parsed, dict):
            raise errors.AdjudicationMalformed("completion is not a JSON object")
        return parsed

    def judge_sync(self, request: JudgeRequest) -> Verdict:
        messages = [
            {"role": "system", "content": prompts.SYSTEM_JUDGE},
            {"role": "user", "content": prompts.JUDGE_PROMPT.format(context=build_context(request))},
        ]
        body = self._call_chat(messages)
        parsed = self._extract(body)
        return normalize_verdict(parsed, request.hearing_id, raw_payload=body)

    async def judge(self, request: JudgeRequest) -> Verdict:
        return await run_in_threadpool(self.judge_sync, request)


def build_adjudicator(settings: Settings) -> Adjudicator:
    if settings.use_fallback_adjudicator:
        logger.info("Using fallback adjudicator (mock=%s)", settings.judge_mock)
        return FallbackAdjudicator()
    logger.info("Using OpenRouter adjudicator (model=%s)", settings.openrouter_model)
    return OpenRouterAdjudicator(
        api_key=settings.openrouter_api_key,
        model=settings.openrouter_model,
        base_url=settings.openrouter_base_url,
        timeout=settings.llm_timeout,
        max_tokens=settings.llm_max_tokens,
    )
