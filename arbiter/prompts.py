SYSTEM_JUDGE = "You are an impartial relationship dispute judge who outputs strict JSON only."

JUDGE_PROMPT = """You are a neutral mediator judging a dispute between two partners.
Weigh the facts first, then the emotions and outside pressure each side is under.

Do not repeat or quote insulting language; restate feelings and requests neutrally.
Do not moralize. Stay calm and concrete. Say what information is missing and list
any assumption you had to make. Keep it short.

Return a single JSON object with these fields:
score.partyA_pct, score.partyB_pct (0-100, the two must sum to 100),
score.confidence (0-1), summary,
reasoning{{facts, fairness_checks[], emotion_considerations, assumptions[], missing_info[]}},
advice{{together[], forA[], forB[]}}.

{context}
"""

FALLBACK_SUMMARY = "Heuristic verdict: no adjudication model is configured."
FALLBACK_FACTS = "Shares are based on how much each side wrote, not on what they wrote."
FALLBACK_FAIRNESS = ["Heuristic mode only approximates the split."]
FALLBACK_EMOTIONS = "Not evaluated in heuristic mode."
FALLBACK_TOGETHER = ["Share key feelings calmly and set a time to revisit the issue."]
FALLBACK_FOR_A = ["Acknowledge B's pressure and phrase needs as 'I feel' statements."]
FALLBACK_FOR_B = ["Confirm A's core request and offer one small concrete concession."]
