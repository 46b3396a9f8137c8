"""
FastAPI application exposing the job registry over HTTP.

Routes (all under ``/api/v1``):
- ``GET /health``
- ``POST /jobs`` submit a ``JobSpec``; returns 202 with the job id
  (source and sink paths must lie under ``data_root`` when it is set)
- ``GET /jobs`` list job statuses
- ``GET /jobs/{job_id}`` one job's status
- ``POST /jobs/{job_id}/cancel`` request cancellation
"""

from contextlib import asynccontextmanager
from uuid import UUID

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from weir import __version__
from weir.api.factory import build_job
from weir.core.exceptions import (
    ConfigurationError,
    JobNotFoundError,
    JobStateError,
    PipelineValidationError,
)
from weir.core.models import JobStatus
from weir.core.specifications import JobSpec, ServiceSettings
from weir.orchestration.observers import LoggingObserver
from weir.orchestration.registry import JobController, JobRegistry
from weir.utils.logging_utils import get_logger

logger = get_logger(__name__)


class HealthResponse(BaseModel):
    status: str
    version: str
    jobs: int


class SubmitResponse(BaseModel):
    job_id: UUID


class CancelResponse(BaseModel):
    job_id: UUID
    cancelled: bool


def get_controller(request: Request) -> JobController:
    return request.app.state.controller


def get_settings(request: Request) -> ServiceSettings:
    return request.app.state.settings


router = APIRouter(prefix="/api/v1")


@router.get("/health", response_model=HealthResponse)
def health(controller: JobController = Depends(get_controller)) -> HealthResponse:
    return HealthResponse(
        status="ok", version=__version__, jobs=len(controller.registry)
    )


@router.post(
    "/jobs", response_model=SubmitResponse, status_code=status.HTTP_202_ACCEPTED
)
def submit_job(
    spec: JobSpec,
    controller: JobController = Depends(get_controller),
    settings: ServiceSettings = Depends(get_settings),
) -> SubmitResponse:
    try:
        if settings.data_root is not None:
            spec = spec.confined_to(settings.data_root)
        definition = build_job(spec, observers=[LoggingObserver()])
    except (ConfigurationError, PipelineValidationError, FileNotFoundError) as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    try:
        job_id = definition.submit(controller)
    except JobStateError as e:
        for source in definition.sources:
            source.close()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        ) from e
    return SubmitResponse(job_id=job_id)


@router.get("/jobs", response_model=list[JobStatus])
def list_jobs(controller: JobController = Depends(get_controller)) -> list[JobStatus]:
    return controller.list_jobs()


@router.get("/jobs/{job_id}", response_model=JobStatus)
def get_job(job_id: UUID, controller: JobController = Depends(get_controller)):
    return controller.status(job_id)


@router.post("/jobs/{job_id}/cancel", response_model=CancelResponse)
def cancel_job(job_id: UUID, controller: JobController = Depends(get_controller)):
    return CancelResponse(job_id=job_id, cancelled=controller.cancel(job_id))


async def _job_not_found(request: Request, exc: JobNotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)}
    )


def create_app(settings: ServiceSettings | None = None) -> FastAPI:
    """
    Build the application.

    The job registry is started on startup and shut down (cancelling live
    jobs) when the application stops.
    """
    settings = settings or ServiceSettings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        registry = JobRegistry(
            settings.engine, max_finished_jobs=settings.max_finished_jobs
        ).start()
        app.state.controller = JobController(registry)
        logger.info(f"Job service ready on {settings.host}:{settings.port}")
        try:
            yield
        finally:
            registry.shutdown(timeout=30)
            logger.info("Job service stopped")

    app = FastAPI(title="weir", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    app.add_exception_handler(JobNotFoundError, _job_not_found)
    app.include_router(router)
    return app
