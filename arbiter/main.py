import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import APIRouter, Depends, FastAPI, File, Form, Header, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from . import errors, models
from .adjudicator import Adjudicator, build_adjudicator
from .appeals import AppealController
from .config import Settings, get_settings
from .files import save_upload
from .hearings import HearingEngine
from .lifecycle import CaseLifecycle
from .repository import Repository, SqlRepository, make_engine

load_dotenv()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    repo: Repository
    lifecycle: CaseLifecycle
    hearings: HearingEngine
    appeals: AppealController


def get_services(request: Request) -> Services:
    return request.app.state.services


def current_user(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> str:
    """Acting user. Authentication happens upstream; we only read the identity."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="unauthorized")
    return x_user_id


router = APIRouter()


# Root route
@router.get("/")
def read_root():
    return {"message": "Welcome to the Arbiter API"}


# Favicon handler
@router.get("/favicon.ico")
def favicon():
    return Response(status_code=204)


# ---- HEALTH CHECK ----
@router.get("/health")
def health_check(svc: Services = Depends(get_services)):
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "Arbiter API",
        "adjudicator": type(svc.hearings.adjudicator).__name__,
    }


# ---- CASES ----
@router.post("/cases", status_code=201)
def create_case(
    payload: models.CaseCreate,
    user_id: str = Depends(current_user),
    svc: Services = Depends(get_services),
):
    """Create a new case, optionally inviting the other party"""
    return svc.lifecycle.create_case(
        owner_id=user_id,
        topic=payload.topic,
        relationship_context=payload.relationship_context,
        parties=payload.parties,
        invited_user_id=payload.invited_user_id,
    )


@router.get("/cases")
def list_cases(user_id: str = Depends(current_user), svc: Services = Depends(get_services)):
    """Cases the user takes part in or is invited to"""
    cases = svc.lifecycle.list_cases_for_user(user_id)
    return {
        "cases": [
            {
                "id": c.id,
                "topic": c.topic,
                "status": c.status,
                "created_at": c.created_at,
                "acceptance": c.acceptance,
                "expires_at": c.expires_at,
            }
            for c in cases
        ],
        "count": len(cases),
    }


@router.get("/cases/{case_id}")
def get_case(case_id: str, user_id: str = Depends(current_user), svc: Services = Depends(get_services)):
    """Case with its latest hearing and that hearing's verdict"""
    case = svc.lifecycle.get_case(case_id)
    svc.lifecycle.require_viewer(case, user_id)
    hearings = svc.repo.list_hearings(case.id)
    latest = max(hearings, key=lambda h: h.round) if hearings else None
    verdict = svc.repo.get_verdict(latest.id) if latest else None
    return {"case": case, "latest_hearing": latest, "latest_verdict": verdict}


@router.post("/cases/{case_id}/accept")
def accept_case(case_id: str, user_id: str = Depends(current_user), svc: Services = Depends(get_services)):
    return svc.lifecycle.accept_case(case_id, user_id)


@router.post("/cases/{case_id}/reject")
def reject_case(case_id: str, user_id: str = Depends(current_user), svc: Services = Depends(get_services)):
    return svc.lifecycle.reject_case(case_id, user_id)


# ---- HEARINGS ----
@router.post("/cases/{case_id}/hearings", status_code=201)
def submit_hearing(
    case_id: str,
    payload: models.HearingCreate,
    user_id: str = Depends(current_user),
    svc: Services = Depends(get_services),
):
    hearing = svc.hearings.submit_hearing(
        case_id,
        user_id,
        statements=payload.statements,
        evidence=payload.evidence,
        round=payload.round,
    )
    return {"hearing": hearing}


@router.get("/cases/{case_id}/hearings")
def list_hearings(case_id: str, user_id: str = Depends(current_user), svc: Services = Depends(get_services)):
    hearings = svc.hearings.list_hearings(case_id, user_id)
    return {"hearings": hearings, "count": len(hearings)}


@router.get("/cases/{case_id}/hearings/{hearing_id}")
def get_hearing(
    case_id: str,
    hearing_id: str,
    user_id: str = Depends(current_user),
    svc: Services = Depends(get_services),
):
    return svc.hearings.get_hearing(case_id, hearing_id, user_id)


# ---- EVIDENCE UPLOAD ----
@router.post("/cases/{case_id}/hearings/{hearing_id}/evidence", status_code=201)
async def upload_evidence(
    case_id: str,
    hearing_id: str,
    file: UploadFile = File(...),
    side: str = Form(...),
    user_id: str = Depends(current_user),
    svc: Services = Depends(get_services),
):
    """Attach a file to a hearing; text is extracted into the evidence notes"""
    # authorize before touching the disk
    case = svc.lifecycle.get_case(case_id)
    svc.lifecycle.require_participant(case, user_id)
    svc.hearings.find_hearing(case, hearing_id)
    if side not in models.SIDES:
        raise errors.ValidationError("side must be A or B")

    content = await file.read()
    dest = await save_upload(Path(svc.settings.upload_dir), file.filename or "upload", content)
    return svc.hearings.attach_file(case_id, hearing_id, user_id, side, dest, file.filename or dest.name)


# ---- JUDGEMENT ----
@router.post("/cases/{case_id}/hearings/{hearing_id}/judge")
async def judge_hearing(
    case_id: str,
    hearing_id: str,
    user_id: str = Depends(current_user),
    svc: Services = Depends(get_services),
):
    try:
        verdict = await asyncio.wait_for(
            svc.hearings.judge_hearing(case_id, hearing_id, user_id),
            timeout=svc.settings.judge_timeout,
        )
    except asyncio.TimeoutError:
        logger.warning("Adjudication timed out for hearing %s", hearing_id)
        raise errors.AdjudicationUnavailable("adjudicator timed out")
    return {"verdict": verdict}


@router.get("/cases/{case_id}/hearings/{hearing_id}/verdict")
def get_verdict(
    case_id: str,
    hearing_id: str,
    user_id: str = Depends(current_user),
    svc: Services = Depends(get_services),
):
    return {"verdict": svc.hearings.get_verdict(case_id, hearing_id, user_id)}


# ---- APPEAL ----
@router.post("/cases/{case_id}/hearings/{hearing_id}/appeal", status_code=201)
def appeal(
    case_id: str,
    hearing_id: str,
    payload: Optional[models.AppealCreate] = None,
    user_id: str = Depends(current_user),
    svc: Services = Depends(get_services),
):
    payload = payload or models.AppealCreate()
    hearing = svc.appeals.appeal(
        case_id,
        hearing_id,
        user_id,
        statements=payload.statements,
        evidence=payload.evidence,
    )
    return {"hearing": hearing}


# ---- ERRORS ----
async def arbiter_error_handler(request: Request, exc: errors.ArbiterError):
    body = {"error": exc.code, "detail": exc.detail}
    if isinstance(exc, errors.AdjudicationMalformed):
        body["needs_review"] = True
    return JSONResponse(status_code=exc.status_code, content=body)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "validation_error", "detail": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError):
    return [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]


def create_app(
    repo: Optional[Repository] = None,
    adjudicator: Optional[Adjudicator] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.getLogger("arbiter").setLevel(settings.log_level.upper())

    if repo is None:
        repo = SqlRepository(make_engine(settings.database_url, echo=settings.sql_echo))
    if adjudicator is None:
        adjudicator = build_adjudicator(settings)

    lifecycle = CaseLifecycle(repo, invite_ttl=timedelta(hours=settings.invite_ttl_hours))
    hearings = HearingEngine(repo, lifecycle, adjudicator)
    services = Services(
        settings=settings,
        repo=repo,
        lifecycle=lifecycle,
        hearings=hearings,
        appeals=AppealController(repo, lifecycle, hearings, max_rounds=settings.max_rounds),
    )

    app = FastAPI(title="Arbiter API")
    app.state.services = services
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_exception_handler(errors.ArbiterError, arbiter_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.include_router(router)

    @app.on_event("startup")
    def on_startup():
        if isinstance(repo, SqlRepository):
            repo.create_tables()
        logger.info("Arbiter API started (adjudicator=%s)", type(adjudicator).__name__)

    return app


app = create_app()
