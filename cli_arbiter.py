import asyncio
from datetime import timedelta

from arbiter.adjudicator import build_adjudicator
from arbiter.appeals import AppealController
from arbiter.config import get_settings
from arbiter.hearings import HearingEngine
from arbiter.lifecycle import CaseLifecycle
from arbiter.models import StatementIn
from arbiter.repository import SqlRepository, make_engine

OWNER = "cli-user"


def get_user_input(prompt_text):
    return input(prompt_text)


def ask_statement(side, get_user_input):
    narrative = ""
    while not narrative.strip():
        narrative = get_user_input(f"[{side}] What happened? ")
    feelings = get_user_input(f"[{side}] How do you feel? (optional) ")
    requests = get_user_input(f"[{side}] What do you ask for? (comma separated, optional) ")
    return StatementIn(
        side=side,
        narrative=narrative,
        feelings=feelings or None,
        requests=[r.strip() for r in requests.split(",") if r.strip()],
    )


def print_verdict(verdict, out=print):
    score = verdict.score
    out("\n=== Verdict ===")
    out(f"A: {score['partyA_pct']:.0f}%  B: {score['partyB_pct']:.0f}%  (confidence {score['confidence']:.2f})")
    out(verdict.summary)
    for line in verdict.advice.get("together", []):
        out(f"  * {line}")
    out("")


def run_dispute(lifecycle, hearings, appeals, get_user_input=get_user_input, out=print, max_rounds=3):
    topic = ""
    while not topic.strip():
        topic = get_user_input("What is the dispute about? ")
    case = lifecycle.create_case(owner_id=OWNER, topic=topic)

    statements = [ask_statement("A", get_user_input), ask_statement("B", get_user_input)]
    hearing = hearings.submit_hearing(case.id, OWNER, statements=statements)

    verdicts = []
    while True:
        out(f"\nJudging round {hearing.round}...")
        verdict = asyncio.run(hearings.judge_hearing(case.id, hearing.id, OWNER))
        verdicts.append(verdict)
        print_verdict(verdict, out)

        if hearing.round >= max_rounds:
            break
        again = get_user_input("Appeal with new statements? (y/N) ").strip().lower()
        if again != "y":
            break
        statements = [ask_statement("A", get_user_input), ask_statement("B", get_user_input)]
        hearing = appeals.appeal(case.id, hearing.id, OWNER, statements=statements)

    return case.id, verdicts


def main():
    print("=== Arbiter CLI ===\n")
    settings = get_settings()
    repo = SqlRepository(make_engine(settings.database_url))
    repo.create_tables()

    lifecycle = CaseLifecycle(repo, invite_ttl=timedelta(hours=settings.invite_ttl_hours))
    hearings = HearingEngine(repo, lifecycle, build_adjudicator(settings))
    appeals = AppealController(repo, lifecycle, hearings)

    case_id, verdicts = run_dispute(lifecycle, hearings, appeals, max_rounds=settings.max_rounds or 3)
    print(f"Case {case_id} closed after {len(verdicts)} round(s).")


if __name__ == "__main__":
    main()
