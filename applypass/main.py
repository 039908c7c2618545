from typing import Annotated

import requests
import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Path, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from applypass.core.auth import AuthenticatedUser, require_user
from applypass.core.db import get_db, load_models
from applypass.core.logging_config import setup_logger
from applypass.core.settings import Settings, get_settings
from applypass.models.schemas.event import EventCreateModel, EventResponseModel
from applypass.models.schemas.experiment import (
    AssignmentModel,
    ExperimentCreateModel,
    ExperimentResponseModel,
    ExperimentResultsModel,
)
from applypass.models.schemas.memory import MemoryActionModel
from applypass.models.schemas.usage import UsageSnapshotModel
from applypass.services.analytics import AnalyticsSink
from applypass.services.event_service import EventService
from applypass.services.experiment_service import ExperimentService
from applypass.services.memory_service import MemoryService
from applypass.services.usage_service import UsageBudget, UsageService

setup_logger()
load_models()

app = FastAPI(
    title="ApplyPass growth API",
    description="Experiment assignment, funnel events, usage guard and memory proxy",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)

CurrentUser = Annotated[AuthenticatedUser, Depends(require_user)]


def get_analytics(settings: Annotated[Settings, Depends(get_settings)]) -> AnalyticsSink:
    return AnalyticsSink.from_settings(settings)


def get_http_session():
    session = requests.Session()
    try:
        yield session
    finally:
        session.close()


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc: StarletteHTTPException):
    """Every handled failure is reported as {"error": <message>}."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(SQLAlchemyError)
async def store_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Store failure on {} {}", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": (str(exc).splitlines() or [type(exc).__name__])[0]},
    )


# Malformed bodies on these routes are server errors, not 422.
BODY_ERRORS_AS_500 = {"/memory-management"}


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        loc = ".".join(str(part) for part in first.get("loc", ()))
        message = f"{loc}: {first.get('msg')}" if loc else str(first.get("msg"))
    else:
        message = "Invalid request"
    status_code = (
        status.HTTP_500_INTERNAL_SERVER_ERROR
        if request.url.path in BODY_ERRORS_AS_500
        else status.HTTP_422_UNPROCESSABLE_ENTITY
    )
    return JSONResponse(status_code=status_code, content={"error": message})


@app.get("/")
def health_check():
    return {"status": "ok", "version": app.version}


@app.post(
    "/experiments",
    response_model=ExperimentResponseModel,
    status_code=status.HTTP_201_CREATED,
    summary="Create an experiment definition",
)
def post_experiments(
    experiment_data: ExperimentCreateModel,
    user: CurrentUser,
    db: Session = Depends(get_db),
):
    return ExperimentService(db).create_experiment(experiment_data)


@app.get(
    "/experiments/running",
    response_model=list[ExperimentResponseModel],
    summary="List running experiments",
)
def get_running_experiments(user: CurrentUser, db: Session = Depends(get_db)):
    return ExperimentService(db).list_running_experiments()


@app.get("/experiments/{experiment_id}", response_model=ExperimentResponseModel)
def get_experiment(
    user: CurrentUser,
    experiment_id: str = Path(..., description="The ID of the experiment."),
    db: Session = Depends(get_db),
):
    return ExperimentService(db).get_experiment(experiment_id)


@app.get(
    "/experiments/{experiment_id}/assignment",
    response_model=AssignmentModel,
    summary="Get the caller's variant",
)
def get_user_variant_assignment(
    user: CurrentUser,
    experiment_id: str = Path(..., description="The ID of the experiment."),
    db: Session = Depends(get_db),
):
    """
    Computes the caller's variant deterministically and records it. Users
    outside the experiment's traffic share, or experiments that are not
    running, yield "control".
    """
    return ExperimentService(db).get_user_assignment(
        experiment_id=experiment_id, user_id=user.user_id
    )


@app.post(
    "/experiments/{experiment_id}/events",
    response_model=EventResponseModel,
    status_code=status.HTTP_201_CREATED,
    summary="Record a funnel event for the caller.",
)
def post_events(
    event_data: EventCreateModel,
    user: CurrentUser,
    experiment_id: str = Path(..., description="The ID of the experiment."),
    db: Session = Depends(get_db),
    analytics: AnalyticsSink = Depends(get_analytics),
):
    return EventService(db, analytics=analytics).record_event(
        experiment_id=experiment_id, user_id=user.user_id, event_data=event_data
    )


@app.get(
    "/experiments/{experiment_id}/results",
    response_model=ExperimentResultsModel,
    summary="Get statistics for an experiment",
)
def get_experiment_results(
    user: CurrentUser,
    experiment_id: str,
    days: int = Query(30, ge=1, le=365),
    db: Session = Depends(get_db),
):
    return ExperimentService(db).get_experiment_results(experiment_id, days=days)


@app.api_route(
    "/usage-guard",
    methods=["GET", "POST"],
    response_model=UsageSnapshotModel,
    summary="Token usage against the caller's budgets",
)
def usage_guard(
    user: CurrentUser,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    usage_service = UsageService(db, budget=UsageBudget.from_settings(settings))
    return usage_service.get_usage_snapshot(user.user_id)


@app.post("/memory-management", summary="Clear or count the caller's stored memories")
def memory_management(
    user: CurrentUser,
    body: MemoryActionModel,
    settings: Settings = Depends(get_settings),
    session: requests.Session = Depends(get_http_session),
):
    memory_service = MemoryService(settings, session=session)
    try:
        return memory_service.handle(body.action, user.user_id)
    except requests.RequestException as e:
        logger.error("Memory management error: {}", e)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


if __name__ == "__main__":
    uvicorn.run("applypass.main:app", host="0.0.0.0", port=8000, reload=True)
