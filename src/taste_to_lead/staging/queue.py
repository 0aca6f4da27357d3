"""In-process scheduler for staging jobs.

Jobs run in FIFO order on a fixed number of worker tasks. Provider calls are
serialized across workers, and a call never starts sooner than
``min_interval_seconds`` after the previous one finished. Each job goes

    queued -> running -> done | failed | flagged

and never leaves a terminal status. Every transition is written to the store
before the in-memory mirror changes. Failures are captured into job state;
callers observe outcomes by polling, never through exceptions.
"""

import asyncio
import time
from types import TracebackType
from typing import Any, Final, Self

from taste_to_lead.db.staging_store import JobStore
from taste_to_lead.logging import get_logger
from taste_to_lead.models import (
    JobState,
    ProviderOutput,
    StagingAsset,
    StagingJob,
    StagingJobStatus,
)
from taste_to_lead.staging.provider import StagingProvider
from taste_to_lead.staging.quality_gate import (
    assess_output_metadata_if_available,
    assess_prompt_for_banned_terms,
)

logger = get_logger(__name__)

DEFAULT_MIN_INTERVAL_SECONDS: Final = 8.0

# First call plus one escalated retry
MAX_PROVIDER_ATTEMPTS: Final = 2

ESCALATION_CLAUSE: Final = "ABSOLUTELY NO ARCHITECTURAL CHANGES"

PROMPT_GATE_ERROR: Final = "Prompt failed staging quality gate."
OUTPUT_GATE_ERROR: Final = "Output flagged by staging quality gate."
RETRY_EXHAUSTED_ERROR: Final = "Staging generation failed after retry."
NO_OUTPUT_ERROR: Final = "Provider returned no output image."
QUEUE_CLOSED_ERROR: Final = "Staging queue closed before the job ran."


class QueueClosedError(RuntimeError):
    """Raised when enqueueing on a queue that has been closed."""


def escalate_negative_prompt(negative_prompt: str) -> str:
    """Negative prompt for the retry attempt."""
    return f"{negative_prompt}, {ESCALATION_CLAUSE}"


class StagingQueue:
    """Bounded-concurrency FIFO scheduler for staging jobs."""

    def __init__(
        self,
        store: JobStore,
        provider: StagingProvider,
        *,
        concurrency: int = 1,
        min_interval_seconds: float = DEFAULT_MIN_INTERVAL_SECONDS,
    ) -> None:
        """Initialize the queue. Workers start on ``start()`` or the first enqueue.

        Args:
            store: Persistence for job rows and assets.
            provider: Image provider; only ever called from worker tasks.
            concurrency: Number of jobs processed at once.
            min_interval_seconds: Minimum gap between provider calls, across all workers.
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._store = store
        self._provider = provider
        self._concurrency = concurrency
        self._min_interval = min_interval_seconds
        self._pending: asyncio.Queue[StagingJob] = asyncio.Queue()
        self._states: dict[str, JobState] = {}
        self._workers: list[asyncio.Task[None]] = []
        self._closed = False
        self._throttle = asyncio.Lock()
        self._last_call_finished_at: float | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Spawn the worker tasks. Must be called from a running event loop."""
        if self._closed:
            raise QueueClosedError("Staging queue is closed")
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"staging-worker-{i}")
            for i in range(self._concurrency)
        ]
        logger.info(
            "staging_queue_started",
            concurrency=self._concurrency,
            min_interval_seconds=self._min_interval,
        )

    def enqueue(self, job: StagingJob) -> str:
        """Queue a persisted job for processing and return its id.

        Raises:
            QueueClosedError: If the queue has been closed.
            ValueError: If a job with the same id was already enqueued.
        """
        if self._closed:
            raise QueueClosedError("Staging queue is closed")
        if job.id in self._states:
            raise ValueError(f"Staging job {job.id} was already enqueued")
        self.start()
        self._states[job.id] = JobState(status=StagingJobStatus.QUEUED)
        self._pending.put_nowait(job)
        logger.debug("staging_job_enqueued", job_id=job.id, vibe=job.vibe_id.value)
        return job.id

    def get_job_state(self, job_id: str) -> JobState | None:
        """In-memory status of a job enqueued in this process."""
        return self._states.get(job_id)

    async def join(self) -> None:
        """Wait until every enqueued job has been processed."""
        await self._pending.join()

    async def close(self, *, drain: bool = True) -> None:
        """Stop accepting jobs and shut the workers down.

        Args:
            drain: Process every queued job first. When False, queued jobs are
                marked failed; jobs already running still finish.
        """
        if self._closed:
            return
        self._closed = True
        if not drain:
            while not self._pending.empty():
                job = self._pending.get_nowait()
                try:
                    await self._update(
                        job.id, status=StagingJobStatus.FAILED, error=QUEUE_CLOSED_ERROR
                    )
                finally:
                    self._pending.task_done()
        await self.join()

        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("staging_queue_stopped", drained=drain)

    async def __aenter__(self) -> Self:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close(drain=exc_type is None)

    async def _worker(self, index: int) -> None:
        while True:
            job = await self._pending.get()
            try:
                await self._process(job)
            except Exception as e:
                logger.exception("staging_job_crashed", job_id=job.id, worker=index)
                await self._fail_crashed(job.id, str(e) or type(e).__name__)
            finally:
                self._pending.task_done()

    async def _fail_crashed(self, job_id: str, error: str) -> None:
        """Mark a job whose processing raised as failed, in memory and in the store."""
        current = self._states.get(job_id)
        if current is not None and current.status.is_terminal:
            return
        self._states[job_id] = JobState(status=StagingJobStatus.FAILED, error=error)
        try:
            await self._store.update_job(job_id, status=StagingJobStatus.FAILED, error=error)
        except Exception:
            logger.exception("staging_job_fail_not_persisted", job_id=job_id)

    def _refuse_if_terminal(self, job_id: str, requested: StagingJobStatus | None) -> bool:
        current = self._states.get(job_id)
        if current is None or not current.status.is_terminal:
            return False
        logger.warning(
            "terminal_job_update_refused",
            job_id=job_id,
            status=current.status.value,
            requested=requested.value if requested else None,
        )
        return True

    async def _update(self, job_id: str, **patch: Any) -> bool:
        """Persist a patch, then mirror it in memory.

        Returns:
            False if the job is already terminal and nothing was written.
        """
        status: StagingJobStatus | None = patch.get("status")
        if self._refuse_if_terminal(job_id, status):
            return False
        await self._store.update_job(job_id, **patch)

        current = self._states.get(job_id) or JobState(status=StagingJobStatus.QUEUED)
        self._states[job_id] = JobState(
            status=status or current.status,
            error=patch.get("error", current.error),
            quality_flags=list(patch.get("quality_flags", current.quality_flags)),
        )
        if status is not None:
            logger.info("staging_job_status", job_id=job_id, status=status.value)
        return True

    async def _call_provider(
        self, input_image_url: str, prompt: str, negative_prompt: str
    ) -> ProviderOutput:
        # Held across the call: provider calls never overlap
        async with self._throttle:
            if self._last_call_finished_at is not None:
                wait = self._min_interval - (time.monotonic() - self._last_call_finished_at)
                if wait > 0:
                    await asyncio.sleep(wait)
            try:
                return await self._provider.generate(
                    input_image_url=input_image_url,
                    prompt=prompt,
                    negative_prompt=negative_prompt,
                )
            finally:
                self._last_call_finished_at = time.monotonic()

    async def _process(self, job: StagingJob) -> None:
        log = logger.bind(job_id=job.id, batch_id=job.batch_id, vibe=job.vibe_id.value)
        await self._update(job.id, status=StagingJobStatus.RUNNING, error=None)

        prompt_flags = assess_prompt_for_banned_terms(job.prompt_used, job.negative_prompt_used)
        if prompt_flags:
            log.warning("prompt_gate_rejected", flags=prompt_flags)
            await self._update(
                job.id,
                status=StagingJobStatus.FLAGGED,
                quality_flags=prompt_flags,
                error=PROMPT_GATE_ERROR,
            )
            return

        output: ProviderOutput | None = None
        negative_prompt = job.negative_prompt_used
        last_error = ""
        for attempt in range(1, MAX_PROVIDER_ATTEMPTS + 1):
            if attempt > 1:
                negative_prompt = escalate_negative_prompt(job.negative_prompt_used)
                await self._update(job.id, negative_prompt_used=negative_prompt)
                log.info("provider_retry_escalated", attempt=attempt)
            try:
                output = await self._call_provider(
                    job.input_image_url, job.prompt_used, negative_prompt
                )
                break
            except Exception as e:
                last_error = str(e) or "generation_failed"
                log.warning(
                    "provider_call_failed",
                    attempt=attempt,
                    error=last_error,
                    error_type=type(e).__name__,
                )

        if output is None:
            await self._update(
                job.id,
                status=StagingJobStatus.FAILED,
                error=last_error or RETRY_EXHAUSTED_ERROR,
            )
            return

        output_flags = assess_output_metadata_if_available(output.provider_meta)
        if output_flags:
            log.warning("output_gate_flagged", flags=output_flags)
            await self._update(
                job.id,
                status=StagingJobStatus.FLAGGED,
                quality_flags=output_flags,
                output_image_url=output.output_image_url,
                error=OUTPUT_GATE_ERROR,
            )
            return

        if not output.output_image_url:
            await self._update(job.id, status=StagingJobStatus.FAILED, error=NO_OUTPUT_ERROR)
            return

        await self._store.create_asset(
            StagingAsset(
                staging_job_id=job.id,
                vibe_id=job.vibe_id,
                image_url=output.output_image_url,
            )
        )
        log.info("staging_asset_created")
        await self._update(
            job.id,
            status=StagingJobStatus.DONE,
            output_image_url=output.output_image_url,
            quality_flags=[],
            error=None,
        )
