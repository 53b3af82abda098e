from unittest.mock import MagicMock

import pytest

from sitegen.clients import CloudflareClient, GitHubClient, RailwayClient
from sitegen.deploy import DeploymentTrigger
from sitegen.submission import JobSubmitter
from sitegen.worker import AssemblyWorker

from ..conftest import BASE_DOMAIN


@pytest.fixture
def submitter(store, stream, catalog) -> JobSubmitter:
    return JobSubmitter(store, stream, max_attempts=2, catalog=catalog)


@pytest.fixture
def worker(store, stream, assembler, builder) -> AssemblyWorker:
    return AssemblyWorker(
        store,
        stream,
        assembler,
        builder,
        base_domain=BASE_DOMAIN,
        retry_base_delay=1.0,
        retry_max_delay=8.0,
    )


@pytest.fixture
def github():
    client = MagicMock(spec=GitHubClient)
    created: set[str] = set()

    async def create_repo(name, description="", private=False):
        existed = name in created
        created.add(name)
        return {
            "name": name,
            "full_name": f"be1st/{name}",
            "html_url": f"https://github.com/be1st/{name}",
            "clone_url": f"https://github.com/be1st/{name}.git",
            "existed": existed,
        }

    client.create_repo.side_effect = create_repo
    client.delete_repo.return_value = True
    return client


@pytest.fixture
def railway():
    client = MagicMock(spec=RailwayClient)
    client.create_project.return_value = {
        "id": "rw-proj-1",
        "name": "coffee2u",
        "environment_id": "env-1",
    }

    async def create_service(project_id, name, repo, branch="main"):
        return {"id": f"svc-{name}", "name": name}

    async def create_service_domain(service_id, environment_id):
        return f"{service_id}.up.railway.app"

    client.create_service.side_effect = create_service
    client.create_service_domain.side_effect = create_service_domain
    client.find_project.return_value = None
    client.get_project.return_value = None
    return client


@pytest.fixture
def cloudflare():
    client = MagicMock(spec=CloudflareClient)
    client.upsert_cname.return_value = "dns-1"
    client.delete_records.return_value = 1
    client.list_records.return_value = []
    return client


@pytest.fixture
def trigger(store, github, railway, cloudflare) -> DeploymentTrigger:
    return DeploymentTrigger(
        store,
        github=github,
        railway=railway,
        cloudflare=cloudflare,
        base_domain=BASE_DOMAIN,
        admin_email="owner@coffee2u.test",
    )
