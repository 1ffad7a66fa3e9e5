from __future__ import annotations

import asyncio
import logging
import shutil
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from .errors import ProcessorError, ValidationError, summarize_error
from .fetcher import SourceFetcher
from .models import IntakeRequest, StemArtifact
from .notifier import SlackNotifier, failure_message, notify_best_effort, success_message
from .separator import Separator
from .storage import DropboxPublisher, name_stamp

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    RECEIVED = "received"
    ACKED = "acked"
    FETCHING = "fetching"
    SEPARATING = "separating"
    PUBLISHING = "publishing"
    NOTIFYING_SUCCESS = "notifying_success"
    NOTIFYING_FAILURE = "notifying_failure"


TERMINAL_STATES = frozenset({JobState.NOTIFYING_SUCCESS, JobState.NOTIFYING_FAILURE})


@dataclass
class ProcessingJob:
    request: IntakeRequest
    scratch_root: Path
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    state: JobState = JobState.RECEIVED
    artifacts: list[StemArtifact] = field(default_factory=list)
    error: str | None = None

    @property
    def workspace(self) -> Path:
        return self.scratch_root / self.job_id

    @property
    def download_dir(self) -> Path:
        return self.workspace / "download"

    @property
    def separation_root(self) -> Path:
        return self.workspace / "separated"

    def advance(self, state: JobState) -> None:
        logger.info("%s -> %s", self.state.value, state.value, extra={"job_id": self.job_id})
        self.state = state


class Pipeline:
    def __init__(
        self,
        fetcher: SourceFetcher,
        separator: Separator,
        publisher: DropboxPublisher,
        notifier: SlackNotifier,
        scratch_root: Path,
    ):
        self.fetcher = fetcher
        self.separator = separator
        self.publisher = publisher
        self.notifier = notifier
        self.scratch_root = scratch_root

    def create_job(self, request: IntakeRequest) -> ProcessingJob:
        return ProcessingJob(request=request, scratch_root=self.scratch_root)

    async def run(self, job: ProcessingJob) -> JobState:
        """Drive one acknowledged job to a terminal state.

        Every stage failure is converted here into a single failure
        notification; nothing propagates to the caller.
        """
        if job.state is JobState.RECEIVED:
            job.advance(JobState.ACKED)

        request = job.request
        try:
            url = request.require_url()
        except ValidationError as exc:
            logger.info("Nothing to process: %s", exc.message, extra={"job_id": job.job_id})
            return job.state

        target = request.notify_target
        try:
            job.workspace.mkdir(parents=True, exist_ok=True)

            job.advance(JobState.FETCHING)
            source = await asyncio.to_thread(
                self.fetcher.fetch, url, job.download_dir, job.job_id
            )

            job.advance(JobState.SEPARATING)
            artifacts = await asyncio.to_thread(
                self.separator.separate, source, job.separation_root, job.job_id
            )

            job.advance(JobState.PUBLISHING)
            stamp = name_stamp(job.created_at)
            for artifact in artifacts:
                await asyncio.to_thread(self.publisher.publish, artifact, request.title, stamp, job.job_id)
            job.artifacts = artifacts

            by_kind = {artifact.kind: artifact for artifact in artifacts}
            job.advance(JobState.NOTIFYING_SUCCESS)
            await notify_best_effort(
                self.notifier,
                target,
                success_message(by_kind["vocals"], by_kind["instrumental"]),
                job.job_id,
            )
        except Exception as exc:
            job.error = summarize_error(exc)
            if isinstance(exc, ProcessorError):
                logger.error("Job failed in %s: %s", job.state.value, job.error, extra={"job_id": job.job_id})
            else:
                logger.exception("Job failed in %s", job.state.value, extra={"job_id": job.job_id})
            job.advance(JobState.NOTIFYING_FAILURE)
            await notify_best_effort(self.notifier, target, failure_message(job.error), job.job_id)
        finally:
            shutil.rmtree(job.workspace, ignore_errors=True)

        return job.state
