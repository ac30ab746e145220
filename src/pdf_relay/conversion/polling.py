import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

from .interfaces import JobGateway, JobSnapshot, JobStatus

logger = logging.getLogger(__name__)


class PollOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class PollResult:
    outcome: PollOutcome
    snapshot: JobSnapshot
    attempts: int


class JobPoller:
    """Fixed-interval poller for a vendor conversion job.

    Sleeps `interval` seconds before every status check and gives up after
    `max_polls` checks. Transport errors from the gateway propagate on the
    first occurrence; only "in progress" answers are retried.
    """

    def __init__(
        self,
        jobs: JobGateway,
        *,
        interval: float = 2.0,
        max_polls: int = 20,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._jobs = jobs
        self._interval = interval
        self._max_polls = max_polls
        self._sleep = sleep

    async def poll(self, polling_url: str, token: str) -> PollResult:
        snapshot = JobSnapshot(status=JobStatus.IN_PROGRESS)
        attempts = 0
        logger.info("Polling for job completion...")
        while snapshot.status == JobStatus.IN_PROGRESS and attempts < self._max_polls:
            await self._sleep(self._interval)
            snapshot = await self._jobs.fetch_status(polling_url, token)
            attempts += 1
            logger.info("Job status: %s (check %d/%d)", snapshot.status, attempts, self._max_polls)
        return PollResult(outcome=self.classify(snapshot), snapshot=snapshot, attempts=attempts)

    @staticmethod
    def classify(snapshot: JobSnapshot) -> PollOutcome:
        if snapshot.status in JobStatus.SUCCESS:
            return PollOutcome.SUCCEEDED
        if snapshot.status == JobStatus.IN_PROGRESS:
            return PollOutcome.TIMED_OUT
        return PollOutcome.FAILED
