import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable

from .errors import JobFailure, JobTimeout, ValidationFailure
from .interfaces import (
    AssetGateway,
    AuthGateway,
    JobGateway,
    JobSnapshot,
    PdfStream,
    RenderOptions,
    ResultGateway,
)
from .polling import JobPoller, PollOutcome, PollResult

logger = logging.getLogger(__name__)

HTML_MEDIA_TYPE = "text/html"


class PipelineStage(str, Enum):
    RECEIVED = "received"
    AUTHENTICATING = "authenticating"
    UPLOAD_SLOT_REQUESTED = "upload_slot_requested"
    UPLOADING_CONTENT = "uploading_content"
    JOB_STARTING = "job_starting"
    POLLING = "polling"
    DOWNLOADING = "downloading"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class PipelineRun:
    """Where a single request currently is in the pipeline."""

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    stage: PipelineStage = PipelineStage.RECEIVED
    error: str | None = None

    def advance(self, stage: PipelineStage) -> None:
        self.stage = stage
        logger.info("[%s] %s", self.id, stage.value)

    def fail(self, error: Exception) -> None:
        logger.error("[%s] PDF generation failed during %s: %s", self.id, self.stage.value, error)
        self.error = str(error)
        self.stage = PipelineStage.FAILED

    def abandon(self) -> None:
        logger.warning("[%s] Client stopped reading during %s", self.id, self.stage.value)
        self.error = "stream abandoned by client"
        self.stage = PipelineStage.FAILED


class TrackedPdfStream(PdfStream):
    """Wraps the vendor stream so the run is marked completed or failed at the end."""

    def __init__(self, inner: PdfStream, run: PipelineRun) -> None:
        self._inner = inner
        self.run = run

    async def iter_bytes(self):
        try:
            async for chunk in self._inner.iter_bytes():
                yield chunk
        except (GeneratorExit, asyncio.CancelledError):
            self.run.abandon()
            raise
        except Exception as e:
            self.run.fail(e)
            raise
        else:
            self.run.advance(PipelineStage.COMPLETED)
        finally:
            await self._inner.aclose()

    async def aclose(self) -> None:
        await self._inner.aclose()


class ConversionService:
    """Core domain service turning HTML into a streamed PDF.

    Runs the vendor calls of one request strictly in sequence. The service
    itself holds no per-request state, so concurrent requests never see each
    other's token, asset or job.
    """

    def __init__(
        self,
        auth: AuthGateway,
        assets: AssetGateway,
        jobs: JobGateway,
        results: ResultGateway,
        *,
        options: RenderOptions | None = None,
        poll_interval: float = 2.0,
        max_polls: int = 20,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._auth = auth
        self._assets = assets
        self._jobs = jobs
        self._results = results
        self._options = options or RenderOptions()
        self._poller = JobPoller(jobs, interval=poll_interval, max_polls=max_polls, sleep=sleep)

    async def open_pdf(self, html: str | None) -> TrackedPdfStream:
        """Run the pipeline up to the point where PDF bytes are ready to flow.

        Raises `ValidationFailure` before any network call when `html` is
        missing or empty; any later failure marks the run failed and propagates.
        """
        if not html:
            raise ValidationFailure()
        run = PipelineRun()
        try:
            stream = await self._run(run, html)
        except Exception as e:
            run.fail(e)
            raise
        return TrackedPdfStream(stream, run)

    async def _run(self, run: PipelineRun, html: str) -> PdfStream:
        run.advance(PipelineStage.AUTHENTICATING)
        token = await self._auth.authenticate()
        logger.info("[%s] Successfully obtained access token.", run.id)

        run.advance(PipelineStage.UPLOAD_SLOT_REQUESTED)
        asset = await self._assets.request_upload_slot(token, HTML_MEDIA_TYPE)
        logger.info("[%s] Obtained upload URI for asset %s.", run.id, asset.asset_id)

        run.advance(PipelineStage.UPLOADING_CONTENT)
        await self._assets.upload_content(asset.upload_uri, html.encode("utf-8"), HTML_MEDIA_TYPE)

        run.advance(PipelineStage.JOB_STARTING)
        polling_url = await self._jobs.start_job(asset.asset_id, token, self._options)

        run.advance(PipelineStage.POLLING)
        result = await self._poller.poll(polling_url, token)
        snapshot = self._require_success(result)

        run.advance(PipelineStage.DOWNLOADING)
        stream = await self._results.open(snapshot.download_uri)  # type: ignore[arg-type]
        run.advance(PipelineStage.STREAMING)
        return stream

    @staticmethod
    def _require_success(result: PollResult) -> JobSnapshot:
        snapshot = result.snapshot
        if result.outcome is PollOutcome.TIMED_OUT:
            logger.error("Job timed out after %d checks: %s", result.attempts, snapshot.raw)
            raise JobTimeout(snapshot.status, result.attempts)
        if result.outcome is PollOutcome.FAILED:
            logger.error("Job failed: %s", snapshot.raw)
            raise JobFailure(snapshot.status)
        if not snapshot.download_uri:
            logger.error("Job finished without a download URI: %s", snapshot.raw)
            raise JobFailure(snapshot.status, "PDF generation finished without a download URI.")
        return snapshot
