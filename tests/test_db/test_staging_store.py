"""Tests for staging job storage with SQLite."""

from collections.abc import Callable
from pathlib import Path

import pytest

from taste_to_lead.db.staging_store import StagingStorage
from taste_to_lead.models import StagingAsset, StagingJob, StagingJobStatus, Vibe

JobFactory = Callable[..., StagingJob]


class TestStagingStorage:
    async def test_initialize_creates_tables(self) -> None:
        storage = StagingStorage(":memory:")
        await storage.initialize()
        conn = await storage._get_connection()
        cursor = await conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        tables = {row[0] for row in await cursor.fetchall()}
        await storage.close()

        assert {"staging_jobs", "staging_assets"} <= tables

    async def test_initialize_is_idempotent(self, store: StagingStorage) -> None:
        await store.initialize()

    async def test_creates_parent_directory(self, tmp_path: Path) -> None:
        db_path = tmp_path / "nested" / "staging.db"
        storage = StagingStorage(str(db_path))
        await storage.initialize()
        await storage.close()
        assert db_path.exists()

    async def test_job_round_trip(self, store: StagingStorage, make_job: JobFactory) -> None:
        job = make_job(Vibe.MONARCH, agent_id="agent-7", listing_id=42)
        await store.create_job(job)

        loaded = await store.get_job(job.id)
        assert loaded is not None
        assert loaded.vibe_id is Vibe.MONARCH
        assert loaded.status is StagingJobStatus.QUEUED
        assert loaded.agent_id == "agent-7"
        assert loaded.listing_id == 42
        assert loaded.quality_flags == []
        assert loaded.prompt_used == job.prompt_used

    async def test_unknown_job(self, store: StagingStorage) -> None:
        assert await store.get_job("missing") is None

    async def test_batch_jobs_in_creation_order(
        self, store: StagingStorage, make_job: JobFactory
    ) -> None:
        vibes = [Vibe.NOMAD, Vibe.PURIST, Vibe.CURATOR]
        for vibe in vibes:
            await store.create_job(make_job(vibe, batch_id="b-1"))
        await store.create_job(make_job(Vibe.MONARCH, batch_id="b-2"))

        jobs = await store.get_jobs_by_batch("b-1")
        assert [job.vibe_id for job in jobs] == vibes
        assert await store.get_jobs_by_batch("unknown") == []


class TestUpdateJob:
    async def test_partial_update(self, store: StagingStorage, make_job: JobFactory) -> None:
        job = make_job()
        await store.create_job(job)

        assert await store.update_job(
            job.id,
            status=StagingJobStatus.FLAGGED,
            quality_flags=["provider_safety_blocked"],
            error="Output flagged by staging quality gate.",
        )

        loaded = await store.get_job(job.id)
        assert loaded is not None
        assert loaded.status is StagingJobStatus.FLAGGED
        assert loaded.quality_flags == ["provider_safety_blocked"]
        assert loaded.error == "Output flagged by staging quality gate."
        assert loaded.prompt_used == job.prompt_used
        assert loaded.updated_at > job.updated_at

    async def test_clearing_error(self, store: StagingStorage, make_job: JobFactory) -> None:
        job = make_job(error="old")
        await store.create_job(job)
        await store.update_job(job.id, error=None)

        loaded = await store.get_job(job.id)
        assert loaded is not None
        assert loaded.error is None

    async def test_unknown_job_returns_false(self, store: StagingStorage) -> None:
        assert not await store.update_job("missing", status=StagingJobStatus.RUNNING)

    async def test_rejects_unknown_columns(
        self, store: StagingStorage, make_job: JobFactory
    ) -> None:
        job = make_job()
        await store.create_job(job)
        with pytest.raises(ValueError, match="batch_id"):
            await store.update_job(job.id, batch_id="other")


class TestAssets:
    async def test_asset_lookup(self, store: StagingStorage, make_job: JobFactory) -> None:
        job = make_job(Vibe.NATURALIST)
        await store.create_job(job)
        asset = StagingAsset(
            staging_job_id=job.id, vibe_id=Vibe.NATURALIST, image_url="data:image/png;base64,AA=="
        )
        await store.create_asset(asset)

        loaded = await store.get_asset_for_job(job.id)
        assert loaded == asset

    async def test_no_asset(self, store: StagingStorage) -> None:
        assert await store.get_asset_for_job("missing") is None
