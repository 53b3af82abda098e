from unittest.mock import AsyncMock

import pytest

from sitegen.contracts.dto import JobStatus
from sitegen.errors import JobValidationError, NotFoundError, QueueUnavailableError
from sitegen.queues import ASSEMBLY_QUEUE
from sitegen.submission import JobSubmitter


@pytest.fixture
def submitter(store, stream, catalog) -> JobSubmitter:
    return JobSubmitter(store, stream, max_attempts=3, catalog=catalog)


class TestSubmit:
    @pytest.mark.asyncio
    async def test_creates_job_and_one_queue_entry(self, submitter, store, stream, cafe_payload):
        result = await submitter.submit(cafe_payload)

        assert result.status == JobStatus.QUEUED
        assert not result.duplicate
        job = await store.get_job(result.job_id)
        assert job.business_name == "Coffee2U"
        assert job.max_attempts == 3
        assert job.spec["modules"] == ["menu", "booking"]

        entries = await stream.redis.xrange(ASSEMBLY_QUEUE)
        assert len(entries) == 1

    @pytest.mark.asyncio
    async def test_missing_field_creates_nothing(self, submitter, store, stream):
        with pytest.raises(JobValidationError) as exc_info:
            await submitter.submit({"industry": "cafe"})

        assert exc_info.value.errors[0]["loc"] == ("name",)
        assert store.jobs == {}
        assert await stream.redis.xlen(ASSEMBLY_QUEUE) == 0

    @pytest.mark.asyncio
    async def test_unknown_module_rejected(self, submitter, store, cafe_payload):
        cafe_payload["modules"] = ["menu", "time-machine"]
        with pytest.raises(JobValidationError, match="time-machine"):
            await submitter.submit(cafe_payload)
        assert store.jobs == {}

    @pytest.mark.asyncio
    async def test_resubmission_returns_same_job(self, submitter, stream, cafe_payload):
        first = await submitter.submit(cafe_payload)
        second = await submitter.submit(dict(reversed(list(cafe_payload.items()))))

        assert second.job_id == first.job_id
        assert second.duplicate
        assert await stream.redis.xlen(ASSEMBLY_QUEUE) == 1

    @pytest.mark.asyncio
    async def test_resubmission_after_failure_creates_new_job(
        self, submitter, store, cafe_payload
    ):
        first = await submitter.submit(cafe_payload)
        await store.transition_job(first.job_id, (JobStatus.QUEUED,), JobStatus.RUNNING)
        await store.transition_job(first.job_id, (JobStatus.RUNNING,), JobStatus.FAILED)

        second = await submitter.submit(cafe_payload)

        assert second.job_id != first.job_id
        assert not second.duplicate

    @pytest.mark.asyncio
    async def test_enqueue_failure_marks_job_failed(self, store, stream, catalog, cafe_payload):
        stream.publish_message = AsyncMock(side_effect=ConnectionError("redis down"))
        submitter = JobSubmitter(store, stream, catalog=catalog)

        with pytest.raises(QueueUnavailableError):
            await submitter.submit(cafe_payload)

        [job] = store.jobs.values()
        assert job.status == JobStatus.FAILED
        assert job.error.startswith("enqueue failed")


class TestStatusAndCancel:
    @pytest.mark.asyncio
    async def test_get_status(self, submitter, cafe_payload):
        result = await submitter.submit(cafe_payload)
        job = await submitter.get_status(result.job_id)
        assert job.status == JobStatus.QUEUED
        assert job.progress == 0
        with pytest.raises(NotFoundError):
            await submitter.get_status("missing")

    @pytest.mark.asyncio
    async def test_cancel_only_queued(self, submitter, store, cafe_payload):
        result = await submitter.submit(cafe_payload)
        assert await submitter.cancel(result.job_id)
        assert (await store.get_job(result.job_id)).status == JobStatus.CANCELLED
        # already cancelled
        assert not await submitter.cancel(result.job_id)

    @pytest.mark.asyncio
    async def test_cancel_running_rejected(self, submitter, store, cafe_payload):
        result = await submitter.submit(cafe_payload)
        await store.transition_job(result.job_id, (JobStatus.QUEUED,), JobStatus.RUNNING)
        assert not await submitter.cancel(result.job_id)
        assert (await store.get_job(result.job_id)).status == JobStatus.RUNNING

    @pytest.mark.asyncio
    async def test_queue_status(self, submitter, cafe_payload):
        await submitter.submit(cafe_payload)
        status = await submitter.queue_status()
        assert status.counts["queued"] == 1
        assert status.stream_length == 1
