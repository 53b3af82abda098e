"""API tests over an in-memory store and fakeredis."""

import http
import json
from unittest.mock import AsyncMock, MagicMock
import uuid

from httpx import ASGITransport, AsyncClient
import pytest

from sitegen.api.dependencies import get_app_settings, get_store, get_stream
from sitegen.api.main import app
from sitegen.contracts.dto import DeploymentStatus, JobStatus, ProjectStatus
from sitegen.queues import ASSEMBLY_QUEUE, DEPLOY_QUEUE


@pytest.fixture
async def client(settings, store, stream):
    app.dependency_overrides[get_app_settings] = lambda: settings
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_stream] = lambda: stream
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def make_project(store, **fields):
    project_id = str(uuid.uuid4())
    return await store.create_project(
        project_id=project_id,
        name="Coffee2U",
        slug=fields.pop("slug", f"coffee2u-{project_id[:8]}"),
        industry="cafe",
        modules=["menu"],
        status=fields.pop("status", ProjectStatus.COMPLETED),
        **fields,
    )


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == http.HTTPStatus.OK
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_root_endpoint(client):
    response = await client.get("/")
    assert response.status_code == http.HTTPStatus.OK
    assert response.json()["name"] == "Sitegen API"


class TestJobs:
    @pytest.mark.asyncio
    async def test_submit_queues_job(self, client, store, stream, cafe_payload):
        response = await client.post(
            "/api/jobs/", json=cafe_payload, headers={"X-Correlation-ID": "req-cafe"}
        )

        assert response.status_code == http.HTTPStatus.ACCEPTED
        body = response.json()
        assert body["status"] == "queued"
        assert body["duplicate"] is False
        assert response.headers["X-Correlation-ID"] == "req-cafe"

        job = await store.get_job(body["job_id"])
        assert job.business_name == "Coffee2U"
        [(_, fields)] = await stream.redis.xrange(ASSEMBLY_QUEUE)
        message = json.loads(fields["data"])
        assert message["job_id"] == body["job_id"]
        assert message["correlation_id"] == "req-cafe"

    @pytest.mark.asyncio
    async def test_resubmission_returns_same_job(self, client, cafe_payload):
        first = (await client.post("/api/jobs/", json=cafe_payload)).json()
        second = (await client.post("/api/jobs/", json=cafe_payload)).json()

        assert second["job_id"] == first["job_id"]
        assert second["duplicate"] is True

    @pytest.mark.asyncio
    async def test_unknown_module_is_rejected(self, client, store, cafe_payload):
        cafe_payload["modules"] = ["menu", "teleporter"]

        response = await client.post("/api/jobs/", json=cafe_payload)

        assert response.status_code == http.HTTPStatus.UNPROCESSABLE_ENTITY
        detail = response.json()["detail"]
        assert "teleporter" in detail["message"]
        assert detail["errors"][0]["type"] == "unknown_module"
        assert store.jobs == {}

    @pytest.mark.asyncio
    async def test_missing_name_is_rejected(self, client, cafe_payload):
        del cafe_payload["name"]

        response = await client.post("/api/jobs/", json=cafe_payload)

        assert response.status_code == http.HTTPStatus.UNPROCESSABLE_ENTITY
        assert response.json()["detail"]["errors"][0]["loc"] == ["name"]

    @pytest.mark.asyncio
    async def test_queue_outage_returns_503(self, client, store, cafe_payload):
        broken = MagicMock()
        broken.publish_message = AsyncMock(side_effect=ConnectionError("redis down"))
        app.dependency_overrides[get_stream] = lambda: broken

        response = await client.post("/api/jobs/", json=cafe_payload)

        assert response.status_code == http.HTTPStatus.SERVICE_UNAVAILABLE
        [job] = store.jobs.values()
        assert job.status == JobStatus.FAILED

    @pytest.mark.asyncio
    async def test_get_job(self, client, cafe_payload):
        job_id = (await client.post("/api/jobs/", json=cafe_payload)).json()["job_id"]

        response = await client.get(f"/api/jobs/{job_id}")

        assert response.status_code == http.HTTPStatus.OK
        body = response.json()
        assert body["status"] == "queued"
        assert body["attempts"] == 0
        assert body["modules"] == ["menu", "booking"]

    @pytest.mark.asyncio
    async def test_get_unknown_job(self, client):
        response = await client.get("/api/jobs/nope")
        assert response.status_code == http.HTTPStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_cancel_queued_job(self, client, cafe_payload):
        job_id = (await client.post("/api/jobs/", json=cafe_payload)).json()["job_id"]

        response = await client.delete(f"/api/jobs/{job_id}")

        assert response.status_code == http.HTTPStatus.OK
        assert response.json()["status"] == "cancelled"

    @pytest.mark.asyncio
    async def test_cancel_running_job_conflicts(self, client, store, cafe_payload):
        job_id = (await client.post("/api/jobs/", json=cafe_payload)).json()["job_id"]
        await store.transition_job(job_id, (JobStatus.QUEUED,), JobStatus.RUNNING)

        response = await client.delete(f"/api/jobs/{job_id}")

        assert response.status_code == http.HTTPStatus.CONFLICT

    @pytest.mark.asyncio
    async def test_cancel_unknown_job(self, client):
        response = await client.delete("/api/jobs/nope")
        assert response.status_code == http.HTTPStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_queue_status(self, client, cafe_payload):
        await client.post("/api/jobs/", json=cafe_payload)

        response = await client.get("/api/jobs/")

        assert response.status_code == http.HTTPStatus.OK
        body = response.json()
        assert body["counts"]["queued"] == 1
        assert body["stream_length"] == 1
        assert body["delayed"] == 0


class TestProjects:
    @pytest.mark.asyncio
    async def test_list_and_filter(self, client, store):
        await make_project(store)
        deployed = await make_project(store, status=ProjectStatus.DEPLOYED)

        all_projects = (await client.get("/api/projects/")).json()
        only_deployed = (await client.get("/api/projects/", params={"status": "deployed"})).json()

        assert len(all_projects) == 2
        assert [p["id"] for p in only_deployed] == [deployed.id]

    @pytest.mark.asyncio
    async def test_get_project(self, client, store):
        project = await make_project(store)

        response = await client.get(f"/api/projects/{project.id}")

        assert response.status_code == http.HTTPStatus.OK
        assert response.json()["slug"] == project.slug

    @pytest.mark.asyncio
    async def test_get_unknown_project(self, client):
        response = await client.get("/api/projects/nope")
        assert response.status_code == http.HTTPStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_list_deployments(self, client, store):
        project = await make_project(store)
        await store.create_deployment(
            deployment_id="dep-1", project_id=project.id, platform="railway"
        )

        response = await client.get(f"/api/projects/{project.id}/deployments")

        assert response.status_code == http.HTTPStatus.OK
        assert [d["id"] for d in response.json()] == ["dep-1"]

    @pytest.mark.asyncio
    async def test_request_deploy(self, client, store, stream):
        project = await make_project(store)

        response = await client.post(f"/api/projects/{project.id}/deploy")

        assert response.status_code == http.HTTPStatus.ACCEPTED
        assert response.json()["status"] == "queued"
        [(_, fields)] = await stream.redis.xrange(DEPLOY_QUEUE)
        assert json.loads(fields["data"])["project_id"] == project.id

    @pytest.mark.asyncio
    async def test_request_deploy_unknown_project(self, client):
        response = await client.post("/api/projects/nope/deploy")
        assert response.status_code == http.HTTPStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_backfill_urls(self, client, store):
        project = await make_project(store, status=ProjectStatus.DEPLOYED)
        await store.create_deployment(
            deployment_id="dep-1", project_id=project.id, platform="railway"
        )
        await store.update_deployment(
            "dep-1",
            status=DeploymentStatus.SUCCEEDED,
            urls={"frontend": "https://coffee2u.be1st.io"},
        )

        response = await client.post(f"/api/projects/{project.id}/backfill-urls")

        assert response.status_code == http.HTTPStatus.OK
        assert response.json()["frontend_url"] == "https://coffee2u.be1st.io"
