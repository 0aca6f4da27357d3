"""Staging batch submission and status queries.

A batch stages one room image in several vibes: one job per vibe, each
persisted as queued and handed to the staging queue.
"""

import base64
import json
import uuid
from collections.abc import Mapping
from typing import Final, Self

from pydantic import BaseModel, Field

from taste_to_lead.db.staging_store import JobStore
from taste_to_lead.logging import get_logger
from taste_to_lead.models import (
    BatchJobSummary,
    BatchStatus,
    JobStatusView,
    RoomType,
    StagingBatchResponse,
    StagingJob,
    Strictness,
    Vibe,
)
from taste_to_lead.staging.prompts import build_staging_prompt
from taste_to_lead.staging.queue import QueueClosedError, StagingQueue
from taste_to_lead.taxonomy import VIBES, to_vibe

logger = get_logger(__name__)

ROOM_TYPES: Final = tuple(RoomType)


class BatchValidationError(ValueError):
    """Malformed batch submission. Raised before any job is created."""


def image_bytes_to_data_url(data: bytes, mime_type: str) -> str:
    """Encode an uploaded image as a data URL.

    Raises:
        BatchValidationError: If the image is empty.
    """
    if not data:
        raise BatchValidationError("Image file is required")
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type or 'application/octet-stream'};base64,{encoded}"


def parse_vibes_field(raw: str | None) -> list[Vibe]:
    """Parse the vibes form field: a JSON array of vibe names. Absent means all vibes.

    Raises:
        BatchValidationError: For invalid JSON, a non-array, or unknown vibe names.
    """
    if not raw:
        return list(VIBES)
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise BatchValidationError("vibes must be valid JSON array") from e
    if not isinstance(parsed, list):
        raise BatchValidationError("vibes must be an array")
    vibes = [to_vibe(item) if isinstance(item, str) else None for item in parsed]
    if any(vibe is None for vibe in vibes):
        raise BatchValidationError("vibes contains invalid vibe id(s)")
    return [vibe for vibe in vibes if vibe is not None]


class StagingBatchRequest(BaseModel):
    """A validated request to stage one room image in several vibes."""

    room_type: RoomType
    input_image_url: str
    vibes: list[Vibe] = Field(default_factory=lambda: list(VIBES))
    strictness: Strictness = "normal"
    room_notes: str | None = None
    agent_id: str | None = None
    buyer_id: str | None = None
    listing_id: int | None = None

    @classmethod
    def from_form(
        cls,
        fields: Mapping[str, str],
        image: bytes,
        mime_type: str = "image/jpeg",
    ) -> Self:
        """Build a request from submitted form fields and the uploaded image.

        Field names follow the upload form: roomType, vibes (JSON array),
        strictness, roomNotes, agentId, buyerId, listingId.

        Raises:
            BatchValidationError: If any field is invalid or the image is empty.
        """
        room_type_raw = (fields.get("roomType") or "").strip()
        if room_type_raw not in {rt.value for rt in ROOM_TYPES}:
            raise BatchValidationError("roomType is required and must be valid")

        vibes = parse_vibes_field(fields.get("vibes"))
        input_image_url = image_bytes_to_data_url(image, mime_type)

        listing_raw = (fields.get("listingId") or "").strip()
        try:
            listing_id = int(listing_raw) if listing_raw else None
        except ValueError as e:
            raise BatchValidationError("listingId must be an integer") from e

        return cls(
            room_type=RoomType(room_type_raw),
            input_image_url=input_image_url,
            vibes=vibes,
            # Anything other than an explicit "strict" is normal
            strictness="strict" if fields.get("strictness") == "strict" else "normal",
            room_notes=fields.get("roomNotes") or None,
            agent_id=fields.get("agentId") or None,
            buyer_id=fields.get("buyerId") or None,
            listing_id=listing_id,
        )


class StagingService:
    """Creates staging batches and reports their progress."""

    def __init__(self, store: JobStore, queue: StagingQueue) -> None:
        self._store = store
        self._queue = queue

    async def submit_batch(self, request: StagingBatchRequest) -> StagingBatchResponse:
        """Persist one queued job per requested vibe and enqueue each.

        Raises:
            QueueClosedError: If the queue is closed. No job is persisted.
        """
        if self._queue.closed:
            raise QueueClosedError("Staging queue is closed")
        batch_id = str(uuid.uuid4())
        summaries: list[BatchJobSummary] = []

        for vibe in request.vibes:
            built = build_staging_prompt(
                vibe, request.room_type, request.room_notes, request.strictness
            )
            job = StagingJob(
                batch_id=batch_id,
                agent_id=request.agent_id,
                buyer_id=request.buyer_id,
                listing_id=request.listing_id,
                vibe_id=vibe,
                room_type=request.room_type,
                input_image_url=request.input_image_url,
                prompt_used=built.prompt,
                negative_prompt_used=built.negative_prompt,
            )
            await self._store.create_job(job)
            self._queue.enqueue(job)
            summaries.append(BatchJobSummary(job_id=job.id, vibe_id=vibe, status=job.status))

        logger.info(
            "staging_batch_submitted",
            batch_id=batch_id,
            room_type=request.room_type.value,
            strictness=request.strictness,
            job_count=len(summaries),
        )
        return StagingBatchResponse(batch_id=batch_id, jobs=summaries)

    async def get_batch_status(self, batch_id: str) -> BatchStatus:
        """Current status of every job in a batch; an unknown batch has no jobs."""
        jobs = await self._store.get_jobs_by_batch(batch_id)
        return BatchStatus(
            batch_id=batch_id,
            jobs=[
                JobStatusView(
                    job_id=job.id,
                    vibe_id=job.vibe_id,
                    status=job.status,
                    output_image_url=job.output_image_url,
                    quality_flags=job.quality_flags,
                    error=job.error,
                )
                for job in jobs
            ],
        )

    async def get_job(self, job_id: str) -> StagingJob | None:
        """Full job record, or None when unknown."""
        return await self._store.get_job(job_id)
