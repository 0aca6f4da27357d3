"""Tests for staging batch submission and status."""

import json
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from taste_to_lead.db.staging_store import StagingStorage
from taste_to_lead.models import ProviderOutput, RoomType, StagingJobStatus, Vibe
from taste_to_lead.staging.prompts import STRICT_NEGATIVE_SUFFIX
from taste_to_lead.staging.queue import QueueClosedError, StagingQueue
from taste_to_lead.staging.service import (
    BatchValidationError,
    StagingBatchRequest,
    StagingService,
    image_bytes_to_data_url,
    parse_vibes_field,
)
from taste_to_lead.taxonomy import VIBES

IMAGE = b"\xff\xd8\xff\xe0room"


@pytest.fixture
def provider() -> AsyncMock:
    mock = AsyncMock()
    mock.generate.return_value = ProviderOutput(
        output_image_url="data:image/png;base64,c3RhZ2Vk", provider_meta={"safety_blocked": False}
    )
    return mock


@pytest_asyncio.fixture
async def queue(store: StagingStorage, provider: AsyncMock) -> AsyncGenerator[StagingQueue, None]:
    queue = StagingQueue(store, provider, min_interval_seconds=0)
    yield queue
    await queue.close(drain=False)


@pytest.fixture
def service(store: StagingStorage, queue: StagingQueue) -> StagingService:
    return StagingService(store, queue)


class TestParseVibesField:
    @pytest.mark.parametrize("raw", [None, ""])
    def test_absent_means_all_vibes(self, raw: str | None) -> None:
        assert parse_vibes_field(raw) == list(VIBES)

    def test_parses_json_array(self) -> None:
        assert parse_vibes_field('["Nomad", "Purist"]') == [Vibe.NOMAD, Vibe.PURIST]

    def test_empty_array(self) -> None:
        assert parse_vibes_field("[]") == []

    @pytest.mark.parametrize(
        ("raw", "message"),
        [
            ("[Nomad", "vibes must be valid JSON array"),
            ('"Nomad"', "vibes must be an array"),
            ('{"vibe": "Nomad"}', "vibes must be an array"),
            ('["Nomad", "Baroque"]', "vibes contains invalid vibe id(s)"),
            ('["nomad"]', "vibes contains invalid vibe id(s)"),
            ("[1]", "vibes contains invalid vibe id(s)"),
        ],
    )
    def test_invalid_input(self, raw: str, message: str) -> None:
        with pytest.raises(BatchValidationError) as exc_info:
            parse_vibes_field(raw)
        assert str(exc_info.value) == message


class TestStagingBatchRequest:
    def test_from_form(self) -> None:
        request = StagingBatchRequest.from_form(
            {
                "roomType": "kitchen",
                "vibes": '["Curator"]',
                "strictness": "strict",
                "roomNotes": "galley layout",
                "agentId": "agent-1",
                "listingId": "77",
            },
            IMAGE,
            "image/jpeg",
        )
        assert request.room_type is RoomType.KITCHEN
        assert request.vibes == [Vibe.CURATOR]
        assert request.strictness == "strict"
        assert request.room_notes == "galley layout"
        assert request.agent_id == "agent-1"
        assert request.buyer_id is None
        assert request.listing_id == 77
        assert request.input_image_url == image_bytes_to_data_url(IMAGE, "image/jpeg")

    def test_defaults(self) -> None:
        request = StagingBatchRequest.from_form({"roomType": "living"}, IMAGE)
        assert request.vibes == list(VIBES)
        assert request.strictness == "normal"
        assert request.listing_id is None

    @pytest.mark.parametrize("strictness", ["STRICT", "very", ""])
    def test_only_explicit_strict_is_strict(self, strictness: str) -> None:
        request = StagingBatchRequest.from_form(
            {"roomType": "living", "strictness": strictness}, IMAGE
        )
        assert request.strictness == "normal"

    @pytest.mark.parametrize("room_type", ["", "garage", "Living"])
    def test_invalid_room_type(self, room_type: str) -> None:
        with pytest.raises(BatchValidationError, match="roomType"):
            StagingBatchRequest.from_form({"roomType": room_type}, IMAGE)

    def test_missing_image(self) -> None:
        with pytest.raises(BatchValidationError, match="Image file is required"):
            StagingBatchRequest.from_form({"roomType": "living"}, b"")

    def test_invalid_listing_id(self) -> None:
        with pytest.raises(BatchValidationError, match="listingId"):
            StagingBatchRequest.from_form({"roomType": "living", "listingId": "abc"}, IMAGE)


class TestStagingService:
    async def test_two_vibe_batch_completes(
        self, service: StagingService, queue: StagingQueue, provider: AsyncMock
    ) -> None:
        request = StagingBatchRequest.from_form(
            {"roomType": "living", "vibes": json.dumps(["Purist", "Nomad"])}, IMAGE
        )

        response = await service.submit_batch(request)
        assert [job.vibe_id for job in response.jobs] == [Vibe.PURIST, Vibe.NOMAD]
        assert {job.status for job in response.jobs} == {StagingJobStatus.QUEUED}

        await queue.join()
        status = await service.get_batch_status(response.batch_id)

        assert status.batch_id == response.batch_id
        assert len(status.jobs) == 2
        for job in status.jobs:
            assert job.status is StagingJobStatus.DONE
            assert job.output_image_url is not None
            assert job.quality_flags == []
            assert job.error is None
        assert provider.generate.await_count == 2

    async def test_jobs_are_persisted_before_processing(
        self, service: StagingService, store: StagingStorage, queue: StagingQueue
    ) -> None:
        request = StagingBatchRequest(
            room_type=RoomType.OFFICE,
            input_image_url="data:image/png;base64,AA==",
            vibes=[Vibe.FUTURIST],
            strictness="strict",
            buyer_id="buyer-9",
        )
        response = await service.submit_batch(request)
        await queue.join()

        job = await service.get_job(response.jobs[0].job_id)
        assert job is not None
        assert job.batch_id == response.batch_id
        assert job.room_type is RoomType.OFFICE
        assert job.buyer_id == "buyer-9"
        assert job.negative_prompt_used.endswith(STRICT_NEGATIVE_SUFFIX)
        assert "Vibe: Futurist." in job.prompt_used

    async def test_each_batch_gets_its_own_id(self, service: StagingService) -> None:
        request = StagingBatchRequest(
            room_type=RoomType.BED, input_image_url="data:image/png;base64,AA==", vibes=[]
        )
        first = await service.submit_batch(request)
        second = await service.submit_batch(request)
        assert first.batch_id != second.batch_id
        assert first.jobs == []

    async def test_unknown_batch_and_job(self, service: StagingService) -> None:
        status = await service.get_batch_status("missing")
        assert status.jobs == []
        assert await service.get_job("missing") is None

    async def test_closed_queue_rejects_batch_before_persisting(
        self, provider: AsyncMock
    ) -> None:
        store = AsyncMock()
        queue = StagingQueue(store, provider, min_interval_seconds=0)
        await queue.close()
        request = StagingBatchRequest(
            room_type=RoomType.LIVING,
            input_image_url="data:image/png;base64,AA==",
            vibes=[Vibe.PURIST, Vibe.NOMAD],
        )

        with pytest.raises(QueueClosedError):
            await StagingService(store, queue).submit_batch(request)

        store.create_job.assert_not_awaited()
