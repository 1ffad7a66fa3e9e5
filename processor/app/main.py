from __future__ import annotations

import logging
import shutil
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import uvicorn
from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.responses import JSONResponse

from .config import configure_logging, get_settings, prepare_cookie_file
from .errors import AuthError
from .fetcher import SourceFetcher
from .models import ErrorResponse, HealthResponse, IntakeAck, IntakeRequest
from .notifier import SlackNotifier
from .pipeline import JobState, Pipeline
from .security import Authenticator
from .separator import Separator
from .storage import DropboxPublisher

logger = logging.getLogger(__name__)


def build_pipeline(cookie_file: Path | None = None) -> Pipeline:
    settings = get_settings()
    return Pipeline(
        fetcher=SourceFetcher(settings, cookie_file=cookie_file),
        separator=Separator(settings),
        publisher=DropboxPublisher(settings),
        notifier=SlackNotifier(settings),
        scratch_root=settings.scratch_root,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    configure_logging(settings.log_level)
    if not settings.processor_token:
        logger.warning("PROCESSOR_TOKEN is not set; every request will be rejected")

    cookie_dir = Path(tempfile.mkdtemp(prefix="isolator-cookies-"))
    cookie_file = prepare_cookie_file(settings.cookies_b64, cookie_dir)
    settings.scratch_root.mkdir(parents=True, exist_ok=True)

    app.state.authenticator = Authenticator(settings.processor_token)
    app.state.pipeline = build_pipeline(cookie_file)
    try:
        yield
    finally:
        shutil.rmtree(cookie_dir, ignore_errors=True)


app = FastAPI(title="Isolator Processor", version="1.0.0", lifespan=lifespan)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    return JSONResponse(status_code=401, content=ErrorResponse(error="unauthorized").model_dump())


@app.get("/health")
async def health() -> HealthResponse:
    return HealthResponse()


@app.post("/", response_model=IntakeAck)
async def intake(request: Request, background_tasks: BackgroundTasks) -> IntakeAck:
    raw_body = await request.body()
    if not request.app.state.authenticator.is_authorized(raw_body, request.headers):
        logger.info("Rejected unauthorized request from %s", request.client.host if request.client else "-")
        raise AuthError()

    intake_request = IntakeRequest.from_raw_body(raw_body)
    pipeline: Pipeline = request.app.state.pipeline
    job = pipeline.create_job(intake_request)
    logger.info(
        "Intake mode=%s url=%s title=%s",
        intake_request.mode,
        intake_request.url,
        intake_request.title,
        extra={"job_id": job.job_id},
    )

    # Runs only after the response has been sent.
    job.advance(JobState.ACKED)
    background_tasks.add_task(pipeline.run, job)
    return IntakeAck(
        mode=intake_request.mode,
        url=intake_request.url,
        title=intake_request.title,
    )


def run() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("processor up on %s", settings.port)
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
