import asyncio
from unittest.mock import AsyncMock

import pytest

from sitegen.queues import ASSEMBLY_QUEUE
from sitegen.submission import JobSubmitter


@pytest.fixture
def sql_submitter(sql_store, stream, catalog) -> JobSubmitter:
    return JobSubmitter(sql_store, stream, max_attempts=2, catalog=catalog)


class TestConcurrentSubmission:
    @pytest.mark.asyncio
    async def test_identical_submissions_create_one_job(
        self, sql_submitter, sql_store, stream, cafe_payload
    ):
        results = await asyncio.gather(*(sql_submitter.submit(cafe_payload) for _ in range(3)))

        assert len({r.job_id for r in results}) == 1
        assert sorted(r.duplicate for r in results) == [False, True, True]
        assert (await sql_store.count_jobs_by_status())["queued"] == 1
        assert await stream.redis.xlen(ASSEMBLY_QUEUE) == 1

    @pytest.mark.asyncio
    async def test_insert_conflict_returns_the_winning_job(
        self, sql_submitter, sql_store, stream, cafe_payload
    ):
        first = await sql_submitter.submit(cafe_payload)
        winner = await sql_store.get_job(first.job_id)
        # the pre-insert lookup ran before the other request committed
        sql_store.find_active_job = AsyncMock(side_effect=[None, winner])

        second = await sql_submitter.submit(cafe_payload)

        assert second.job_id == first.job_id
        assert second.duplicate
        assert await stream.redis.xlen(ASSEMBLY_QUEUE) == 1
