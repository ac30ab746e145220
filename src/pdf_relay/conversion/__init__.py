"""
Domain layer for HTML to PDF conversion.
Provides gateway interfaces, the vendor adapters and a service that runs the
authenticate, upload, convert, poll and download steps, so that front-ends
(HTTP or others) can share the same core logic.
"""

from .errors import (
    AuthenticationFailure,
    JobFailure,
    JobSubmissionFailure,
    JobTimeout,
    PollingFailure,
    RelayError,
    StreamingFailure,
    UploadFailure,
    ValidationFailure,
)
from .interfaces import AssetGateway, AuthGateway, JobGateway, ResultGateway, JobSnapshot, JobStatus, RenderOptions
from .polling import JobPoller, PollOutcome, PollResult
from .service import ConversionService, PipelineRun, PipelineStage
