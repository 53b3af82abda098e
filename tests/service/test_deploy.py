import json
import uuid

import pytest

from sitegen.contracts.dto import DeploymentStatus, JobStatus, ProjectStatus
from sitegen.contracts.queues.deploy import DeployMessage
from sitegen.deploy import DeploymentTrigger
from sitegen.errors import DeployConfigError, DeploymentError, NotFoundError, ProviderError
from sitegen.queues import (
    ASSEMBLY_GROUP,
    ASSEMBLY_QUEUE,
    DEPLOY_GROUP,
    DEPLOY_QUEUE,
    DEPLOY_RESULTS,
)
from sitegen.redis_client import StreamMessage
from sitegen.worker import DeployConsumer


async def completed_project(store, tmp_path, *, admin: bool = False, **fields):
    root = tmp_path / "generated" / "coffee2u"
    project = await store.create_project(
        project_id=str(uuid.uuid4()),
        name="Coffee2U",
        slug="coffee2u",
        industry="cafe",
        modules=["menu", "booking"],
        status=ProjectStatus.COMPLETED,
        domain="coffee2u.be1st.io",
        output_path=str(root),
        frontend_path=str(root / "frontend"),
        backend_path=str(root / "backend"),
        admin_path=str(root / "admin") if admin else None,
        **fields,
    )
    return project


class TestDeploymentTrigger:
    @pytest.mark.asyncio
    async def test_deploys_frontend_and_backend(
        self, trigger, store, tmp_path, github, railway, cloudflare
    ):
        project = await completed_project(store, tmp_path)

        deployment = await trigger.deploy(project.id)

        assert deployment.status == DeploymentStatus.SUCCEEDED
        assert deployment.url == "https://coffee2u.be1st.io"
        assert deployment.urls["backend"] == "https://api.coffee2u.be1st.io"
        assert "admin" not in deployment.urls

        project = await store.get_project(project.id)
        assert project.status == ProjectStatus.DEPLOYED
        assert project.frontend_url == "https://coffee2u.be1st.io"
        assert project.backend_url == "https://api.coffee2u.be1st.io"
        assert project.admin_url is None
        assert project.github_frontend == "https://github.com/be1st/coffee2u-frontend"
        assert project.hosting_project_id == "rw-proj-1"
        assert project.deployed_at is not None

        assert github.create_repo.await_count == 2
        assert github.push_folder.await_count == 2
        railway.create_project.assert_awaited_once_with("coffee2u")
        assert cloudflare.upsert_cname.await_count == 2
        cloudflare.upsert_cname.assert_any_await(
            "coffee2u.be1st.io", "svc-frontend.up.railway.app", proxied=True
        )
        cloudflare.upsert_cname.assert_any_await(
            "api.coffee2u.be1st.io", "svc-backend.up.railway.app", proxied=False
        )
        github.delete_repo.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_backend_gets_frontend_origin(self, trigger, store, tmp_path, railway):
        project = await completed_project(store, tmp_path)

        await trigger.deploy(project.id)

        variables = {
            call.args[2]: call.args[3] for call in railway.set_variables.await_args_list
        }
        assert variables["svc-backend"]["CORS_ORIGIN"] == "https://coffee2u.be1st.io"
        assert variables["svc-frontend"]["VITE_API_URL"] == "https://api.coffee2u.be1st.io"

    @pytest.mark.asyncio
    async def test_admin_app_is_deployed_when_present(
        self, trigger, store, tmp_path, github, railway
    ):
        project = await completed_project(store, tmp_path, admin=True)

        deployment = await trigger.deploy(project.id)

        assert deployment.urls["admin"] == "https://admin.coffee2u.be1st.io"
        assert github.create_repo.await_count == 3
        admin_vars = next(
            call.args[3]
            for call in railway.set_variables.await_args_list
            if call.args[2] == "svc-admin"
        )
        assert admin_vars["ADMIN_EMAIL"] == "owner@coffee2u.test"

    @pytest.mark.asyncio
    async def test_failed_step_rolls_back(
        self, trigger, store, tmp_path, github, railway, cloudflare
    ):
        project = await completed_project(store, tmp_path)
        railway.create_service.side_effect = ProviderError("railway", "boom")

        deployment = await trigger.deploy(project.id)

        assert deployment.status == DeploymentStatus.ROLLED_BACK
        assert deployment.error.startswith("hosting_service: railway: boom")
        assert deployment.steps[-1] == {"step": "rollback", "complete": True}
        railway.delete_project.assert_awaited_once_with("rw-proj-1")
        assert github.delete_repo.await_count == 2
        # newest first: backend repo was created after the frontend repo
        assert [call.args[0] for call in github.delete_repo.await_args_list] == [
            "coffee2u-backend",
            "coffee2u-frontend",
        ]
        cloudflare.upsert_cname.assert_not_awaited()

        project = await store.get_project(project.id)
        assert project.status == ProjectStatus.DEPLOY_FAILED
        assert project.frontend_url is None
        assert project.metadata["last_deploy_error"] == deployment.error

    @pytest.mark.asyncio
    async def test_existing_repo_is_kept_on_rollback(self, trigger, store, tmp_path, github):
        project = await completed_project(store, tmp_path)

        async def create_repo(name, description="", private=False):
            return {
                "full_name": f"be1st/{name}",
                "html_url": f"https://github.com/be1st/{name}",
                "existed": True,
            }

        github.create_repo.side_effect = create_repo
        github.push_folder.side_effect = ProviderError("github", "push rejected")

        deployment = await trigger.deploy(project.id)

        assert deployment.status == DeploymentStatus.ROLLED_BACK
        assert deployment.error == "github_push: github: push rejected"
        github.delete_repo.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_undo_marks_deployment_failed(
        self, trigger, store, tmp_path, railway, cloudflare
    ):
        project = await completed_project(store, tmp_path)
        cloudflare.upsert_cname.side_effect = ProviderError("cloudflare", "zone locked")
        railway.delete_project.side_effect = ProviderError("railway", "unauthorized")

        deployment = await trigger.deploy(project.id)

        assert deployment.status == DeploymentStatus.FAILED
        assert deployment.error.startswith("dns_record:")
        assert deployment.steps[-1] == {"step": "rollback", "complete": False}
        assert (await store.get_project(project.id)).frontend_url is None

    @pytest.mark.asyncio
    async def test_redeploy_reuses_hosting_project(
        self, trigger, store, tmp_path, railway, cloudflare
    ):
        project = await completed_project(store, tmp_path)
        await trigger.deploy(project.id)
        railway.get_project.return_value = {
            "id": "rw-proj-1",
            "name": "coffee2u",
            "environment_id": "env-1",
            "services": {"frontend": "svc-frontend", "backend": "svc-backend"},
        }

        deployment = await trigger.deploy(project.id)

        assert deployment.status == DeploymentStatus.SUCCEEDED
        railway.get_project.assert_awaited_once_with("rw-proj-1")
        railway.create_project.assert_awaited_once()
        assert railway.create_service.await_count == 2
        assert railway.redeploy_service.await_count == 4
        assert cloudflare.upsert_cname.await_count == 2

    @pytest.mark.asyncio
    async def test_failed_redeploy_leaves_live_site_alone(
        self, trigger, store, tmp_path, github, railway, cloudflare
    ):
        project = await completed_project(store, tmp_path)
        await trigger.deploy(project.id)
        railway.get_project.return_value = {
            "id": "rw-proj-1",
            "name": "coffee2u",
            "environment_id": "env-1",
            "services": {"frontend": "svc-frontend", "backend": "svc-backend"},
        }
        railway.set_variables.side_effect = ProviderError("railway", "rate limited")

        deployment = await trigger.deploy(project.id)

        assert deployment.status == DeploymentStatus.ROLLED_BACK
        assert deployment.error == "hosting_variables: railway: rate limited"
        railway.create_project.assert_awaited_once()
        railway.delete_project.assert_not_awaited()
        railway.delete_service.assert_not_awaited()
        github.delete_repo.assert_not_awaited()
        cloudflare.delete_records.assert_not_awaited()
        cloudflare.restore_records.assert_not_awaited()

        project = await store.get_project(project.id)
        assert project.status == ProjectStatus.DEPLOYED
        assert project.frontend_url == "https://coffee2u.be1st.io"
        assert project.metadata["last_deploy_error"] == deployment.error

    @pytest.mark.asyncio
    async def test_new_service_on_reused_project_is_removed_on_rollback(
        self, trigger, store, tmp_path, railway
    ):
        project = await completed_project(store, tmp_path, hosting_project_id="rw-proj-1")
        railway.get_project.return_value = {
            "id": "rw-proj-1",
            "name": "coffee2u",
            "environment_id": "env-1",
            "services": {"frontend": "svc-frontend"},
        }
        railway.set_variables.side_effect = ProviderError("railway", "rate limited")

        deployment = await trigger.deploy(project.id)

        assert deployment.status == DeploymentStatus.ROLLED_BACK
        railway.create_service.assert_awaited_once_with(
            "rw-proj-1", "backend", "be1st/coffee2u-backend"
        )
        railway.delete_service.assert_awaited_once_with("svc-backend")
        railway.delete_project.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_replaced_dns_records_are_restored(
        self, trigger, store, tmp_path, railway, cloudflare
    ):
        project = await completed_project(store, tmp_path)
        parked = [
            {
                "id": "dns-old",
                "type": "A",
                "name": "coffee2u.be1st.io",
                "content": "192.0.2.10",
                "proxied": False,
                "ttl": 300,
            }
        ]

        async def list_records(name):
            return parked if name == "coffee2u.be1st.io" else []

        cloudflare.list_records.side_effect = list_records
        # the backend domain fails after the frontend record was replaced
        railway.add_custom_domain.side_effect = [None, ProviderError("railway", "domain taken")]

        deployment = await trigger.deploy(project.id)

        assert deployment.status == DeploymentStatus.ROLLED_BACK
        assert deployment.error.startswith("hosting_domain:")
        cloudflare.restore_records.assert_awaited_once_with("coffee2u.be1st.io", parked)
        cloudflare.delete_records.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_credentials_call_nothing(self, store, tmp_path, github):
        project = await completed_project(store, tmp_path)
        trigger = DeploymentTrigger(
            store, github=github, railway=None, cloudflare=None, base_domain="be1st.io"
        )

        assert trigger.check_credentials() == [
            "RAILWAY_TOKEN",
            "CLOUDFLARE_TOKEN/CLOUDFLARE_ZONE_ID",
        ]
        with pytest.raises(DeployConfigError):
            await trigger.deploy(project.id)
        github.create_repo.assert_not_awaited()
        assert await store.list_deployments(project.id) == []

    @pytest.mark.asyncio
    async def test_unknown_project(self, trigger):
        with pytest.raises(NotFoundError):
            await trigger.deploy("missing")

    @pytest.mark.asyncio
    async def test_unfinished_project_is_rejected(self, trigger, store, tmp_path):
        project = await completed_project(store, tmp_path)
        await store.update_project(project.id, status=ProjectStatus.BUILDING)

        with pytest.raises(DeploymentError, match="not ready"):
            await trigger.deploy(project.id)

    def test_from_settings_without_tokens(self, settings, store):
        trigger = DeploymentTrigger.from_settings(store, settings)

        assert trigger.github is None
        assert len(trigger.check_credentials()) == 3


class TestDeployConsumer:
    async def _results(self, stream) -> list[dict]:
        return [
            json.loads(fields["data"]) for _, fields in await stream.redis.xrange(DEPLOY_RESULTS)
        ]

    @pytest.mark.asyncio
    async def test_success_result(self, trigger, store, stream, tmp_path):
        project = await completed_project(store, tmp_path)
        message = DeployMessage(project_id=project.id)
        consumer = DeployConsumer(trigger, stream)

        assert await consumer.handle(
            StreamMessage(message_id="1-0", data=message.model_dump(mode="json"))
        )

        [result] = await self._results(stream)
        assert result["status"] == "success"
        assert result["request_id"] == message.request_id
        assert result["frontend_url"] == "https://coffee2u.be1st.io"
        assert result["duration_ms"] >= 0

    @pytest.mark.asyncio
    async def test_rolled_back_result(self, trigger, store, stream, tmp_path, railway):
        project = await completed_project(store, tmp_path)
        railway.create_project.side_effect = ProviderError("railway", "quota exceeded")
        consumer = DeployConsumer(trigger, stream)

        assert await consumer.handle(
            StreamMessage(message_id="1-0", data={"project_id": project.id})
        )

        [result] = await self._results(stream)
        assert result["status"] == "failed"
        assert result["deployment_id"]
        assert "quota exceeded" in result["error"]

    @pytest.mark.asyncio
    async def test_rejected_deploy_is_acked(self, trigger, stream):
        consumer = DeployConsumer(trigger, stream)

        assert await consumer.handle(StreamMessage(message_id="1-0", data={"project_id": "nope"}))

        [result] = await self._results(stream)
        assert result["status"] == "failed"
        assert result["deployment_id"] is None
        assert "not found" in result["error"]

    @pytest.mark.asyncio
    async def test_malformed_message_is_acked(self, trigger, stream):
        consumer = DeployConsumer(trigger, stream)

        assert await consumer.handle(StreamMessage(message_id="1-0", data={}))
        assert await self._results(stream) == []


@pytest.mark.asyncio
async def test_coffee_shop_from_submission_to_live_url(
    submitter, worker, trigger, store, stream, cafe_payload
):
    cafe_payload["auto_deploy"] = True
    submitted = await submitter.submit(cafe_payload)
    [assembly] = await stream.read_group(ASSEMBLY_QUEUE, ASSEMBLY_GROUP, "worker-1", block_ms=10)
    assert await worker.handle(assembly)

    [deploy] = await stream.read_group(DEPLOY_QUEUE, DEPLOY_GROUP, "worker-1", block_ms=10)
    assert await DeployConsumer(trigger, stream).handle(deploy)

    job = await store.get_job(submitted.job_id)
    assert job.status == JobStatus.SUCCEEDED
    project = await store.get_project(job.project_id)
    assert project.status == ProjectStatus.DEPLOYED
    assert project.frontend_url == "https://coffee2u.be1st.io"
    assert project.admin_url == "https://admin.coffee2u.be1st.io"
