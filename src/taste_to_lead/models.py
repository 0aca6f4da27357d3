"""Pydantic models for vibes, swipes, leads and staging jobs."""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Final, Literal

from pydantic import BaseModel, ConfigDict, Field


class Vibe(str, Enum):
    """The fixed set of interior-design archetypes."""

    PURIST = "Purist"
    INDUSTRIALIST = "Industrialist"
    MONARCH = "Monarch"
    FUTURIST = "Futurist"
    NATURALIST = "Naturalist"
    CURATOR = "Curator"
    CLASSICIST = "Classicist"
    NOMAD = "Nomad"


# Tag given to listings the tagger could not place
UNCLASSIFIED: Final = "Unclassified"

VibeVector = dict[Vibe, float]


class VibeDefinition(BaseModel):
    """Keyword, visual and staging metadata for one vibe."""

    model_config = ConfigDict(frozen=True)

    keywords: tuple[str, ...]
    visual_cues: tuple[str, ...]
    psychology: tuple[str, ...]
    copy_hook: str
    forbidden_changes: tuple[str, ...]
    staging_do: tuple[str, ...]
    staging_dont: tuple[str, ...]
    prompt_seeds: tuple[str, ...]


class SwipeAction(str, Enum):
    """Buyer reaction to a listing card."""

    LIKE = "like"
    NOPE = "nope"
    SAVE = "save"
    SKIP = "skip"


class SwipeEvent(BaseModel):
    """One buyer swipe. Append-only."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    buyer_id: str
    listing_id: int
    action: SwipeAction
    dwell_ms: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class VibeSwipe(BaseModel):
    """A swipe action resolved to the vibe of the swiped listing."""

    model_config = ConfigDict(frozen=True)

    vibe: str | None
    action: SwipeAction


class VibeScore(BaseModel):
    """A vibe with its normalized weight."""

    model_config = ConfigDict(frozen=True)

    vibe: Vibe
    score: float


class VibeWeight(BaseModel):
    """A vibe with its raw (pre-normalization) accumulated weight."""

    model_config = ConfigDict(frozen=True)

    vibe: Vibe
    weight: float


class TasteProfile(BaseModel):
    """Per-vibe swipe counts for a buyer."""

    counts: dict[Vibe, int]
    percentages: dict[Vibe, int]
    top_vibe: Vibe | None = None


class BuyerVibeProfile(BaseModel):
    """Buyer vibe vector aggregated from weighted swipes."""

    vector: VibeVector
    top_vibes: list[VibeScore]
    rationale: list[VibeWeight]


class ListingVibeRationale(BaseModel):
    """Which taxonomy terms matched a listing for one vibe."""

    vibe: Vibe
    matched: list[str]
    score: float


class ListingVibeResult(BaseModel):
    """Listing vibe vector inferred from listing text."""

    vibe_vector: VibeVector
    top_vibes: list[VibeScore]
    rationale: list[ListingVibeRationale]
    algorithm_version: str


class ListingVibes(BaseModel):
    """Stored vibe fields of a listing, as the web layer persists them."""

    listing_id: int
    vibe_vector: dict[str, float] | None = None
    vibe_top: list[VibeScore] = Field(default_factory=list)
    vibe_tag: str | None = None


class LeadDecision(BaseModel):
    """Outcome of scoring a swipe against a listing, and the lead snapshot to store."""

    match_score: int = Field(ge=0, le=100)
    create_lead: bool
    hot_lead: bool
    buyer_vector: VibeVector
    listing_vector: VibeVector | None
    top_buyer_vibes: list[VibeScore]
    top_listing_vibes: list[VibeScore]
    talk_track: str
    avoid_list: list[str]


# ── Staging ──────────────────────────────────────────────────────────────


class RoomType(str, Enum):
    """Room types accepted for staging."""

    LIVING = "living"
    BED = "bed"
    KITCHEN = "kitchen"
    BATH = "bath"
    OFFICE = "office"
    DINING = "dining"
    OTHER = "other"


Strictness = Literal["normal", "strict"]


class StagingPrompt(BaseModel):
    """Positive/negative prompt pair sent to the image provider."""

    model_config = ConfigDict(frozen=True)

    prompt: str
    negative_prompt: str


class StagingJobStatus(str, Enum):
    """Lifecycle of a staging job: queued -> running -> done | failed | flagged."""

    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"
    FLAGGED = "flagged"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES: Final = frozenset(
    {StagingJobStatus.DONE, StagingJobStatus.FAILED, StagingJobStatus.FLAGGED}
)


class StagingJob(BaseModel):
    """One (room image, vibe, room type) generation attempt. Never deleted."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    batch_id: str
    agent_id: str | None = None
    buyer_id: str | None = None
    listing_id: int | None = None
    vibe_id: Vibe
    room_type: RoomType
    input_image_url: str
    status: StagingJobStatus = StagingJobStatus.QUEUED
    output_image_url: str | None = None
    prompt_used: str
    negative_prompt_used: str
    quality_flags: list[str] = Field(default_factory=list)
    error: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class StagingAsset(BaseModel):
    """Accepted output image of a job that finished as done."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    staging_job_id: str
    vibe_id: Vibe
    image_url: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ProviderOutput(BaseModel):
    """Result of a successful provider call."""

    output_image_url: str | None
    provider_meta: dict[str, Any] | None = None


class JobState(BaseModel):
    """In-memory mirror of a job's status, for fast polling."""

    status: StagingJobStatus
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    error: str | None = None
    quality_flags: list[str] = Field(default_factory=list)


class BatchJobSummary(BaseModel):
    """Job entry returned when a batch is submitted."""

    job_id: str
    vibe_id: Vibe
    status: StagingJobStatus


class StagingBatchResponse(BaseModel):
    """Response to a batch submission."""

    batch_id: str
    jobs: list[BatchJobSummary]


class JobStatusView(BaseModel):
    """Status entry for one job of a polled batch."""

    job_id: str
    vibe_id: Vibe
    status: StagingJobStatus
    output_image_url: str | None = None
    quality_flags: list[str] = Field(default_factory=list)
    error: str | None = None


class BatchStatus(BaseModel):
    """Current status of every job in a batch."""

    batch_id: str
    jobs: list[JobStatusView]
