"""Shared pytest fixtures."""

import os
import sys
from collections.abc import AsyncGenerator, Callable, Generator
from typing import Any

import pytest
import pytest_asyncio
import structlog
from hypothesis import HealthCheck, settings

from taste_to_lead.config import Settings
from taste_to_lead.db.staging_store import StagingStorage
from taste_to_lead.models import ListingVibes, RoomType, StagingJob, Vibe, VibeScore
from taste_to_lead.staging.prompts import build_staging_prompt

# Hypothesis settings profiles for different environments
settings.register_profile("fast", max_examples=10)
settings.register_profile(
    "ci",
    max_examples=200,
    suppress_health_check=[HealthCheck.too_slow],
)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "fast"))

ROOM_IMAGE_DATA_URL = "data:image/jpeg;base64,/9j/4AAQSkZJRgABAQ=="


@pytest.fixture(autouse=True)
def _isolate_settings_from_dotenv(monkeypatch: pytest.MonkeyPatch) -> None:
    """Prevent the local .env file from leaking into test Settings instances."""
    monkeypatch.setattr(
        Settings,
        "model_config",
        {**Settings.model_config, "env_file": None},
    )


@pytest.fixture(autouse=True)
def _reset_structlog() -> Generator[None, None, None]:
    """Undo logging configuration made by a test (e.g. via ``main()``).

    ``configure_logging`` binds loggers to the current ``sys.stderr`` and caches
    them on first use; under output capture that stream is closed after the test.
    """
    yield
    structlog.reset_defaults()
    for name, module in list(sys.modules.items()):
        if name.startswith("taste_to_lead"):
            for value in vars(module).values():
                if isinstance(value, structlog._config.BoundLoggerLazyProxy):
                    vars(value).pop("bind", None)


@pytest_asyncio.fixture
async def store() -> AsyncGenerator[StagingStorage, None]:
    """In-memory staging store."""
    storage = StagingStorage(":memory:")
    await storage.initialize()
    yield storage
    await storage.close()


@pytest.fixture
def make_job() -> Callable[..., StagingJob]:
    """Factory for queued jobs with a gate-passing prompt pair."""

    def _make(
        vibe: Vibe = Vibe.PURIST,
        *,
        batch_id: str = "batch-1",
        room_type: RoomType = RoomType.LIVING,
        **overrides: Any,
    ) -> StagingJob:
        built = build_staging_prompt(vibe, room_type)
        fields: dict[str, Any] = {
            "batch_id": batch_id,
            "vibe_id": vibe,
            "room_type": room_type,
            "input_image_url": ROOM_IMAGE_DATA_URL,
            "prompt_used": built.prompt,
            "negative_prompt_used": built.negative_prompt,
        }
        fields.update(overrides)
        return StagingJob(**fields)

    return _make


@pytest.fixture
def purist_listing() -> ListingVibes:
    """A listing whose stored vector is mostly Purist."""
    return ListingVibes(
        listing_id=101,
        vibe_vector={
            "Purist": 0.7,
            "Industrialist": 0.1,
            "Monarch": 0.0,
            "Futurist": 0.2,
            "Naturalist": 0.0,
            "Curator": 0.0,
            "Classicist": 0.0,
            "Nomad": 0.0,
        },
        vibe_top=[
            VibeScore(vibe=Vibe.PURIST, score=0.7),
            VibeScore(vibe=Vibe.FUTURIST, score=0.2),
            VibeScore(vibe=Vibe.INDUSTRIALIST, score=0.1),
        ],
        vibe_tag="Purist",
    )
