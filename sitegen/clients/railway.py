"""Railway GraphQL client."""

from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from sitegen.errors import ProviderError
from sitegen.logging_config import get_logger

logger = get_logger(__name__)

RAILWAY_API_URL = "https://backboard.railway.app/graphql/v2"


class TransientProviderError(ProviderError):
    """Transport failure, 429 or 5xx; retried."""


PROJECT_CREATE = """
mutation projectCreate($input: ProjectCreateInput!) {
  projectCreate(input: $input) {
    id
    name
    environments { edges { node { id name } } }
  }
}
"""

SERVICE_CREATE = """
mutation serviceCreate($input: ServiceCreateInput!) {
  serviceCreate(input: $input) { id name }
}
"""

VARIABLES_UPSERT = """
mutation variableCollectionUpsert($input: VariableCollectionUpsertInput!) {
  variableCollectionUpsert(input: $input)
}
"""

SERVICE_REDEPLOY = """
mutation serviceInstanceRedeploy($serviceId: String!, $environmentId: String!) {
  serviceInstanceRedeploy(serviceId: $serviceId, environmentId: $environmentId)
}
"""

SERVICE_DOMAIN_CREATE = """
mutation serviceDomainCreate($input: ServiceDomainCreateInput!) {
  serviceDomainCreate(input: $input) { domain }
}
"""

CUSTOM_DOMAIN_CREATE = """
mutation customDomainCreate($input: CustomDomainCreateInput!) {
  customDomainCreate(input: $input) { id domain }
}
"""

PROJECTS_QUERY = """
query projects($teamId: String) {
  projects(teamId: $teamId) { edges { node { id name } } }
}
"""

PROJECT_QUERY = """
query project($id: String!) {
  project(id: $id) {
    id
    name
    environments { edges { node { id name } } }
    services { edges { node { id name } } }
  }
}
"""

PROJECT_DELETE = """
mutation projectDelete($id: String!) {
  projectDelete(id: $id)
}
"""

SERVICE_DELETE = """
mutation serviceDelete($id: String!) {
  serviceDelete(id: $id)
}
"""


def _production_environment(project: dict) -> str | None:
    edges = project.get("environments", {}).get("edges", [])
    env = next((e["node"] for e in edges if e["node"]["name"] == "production"), None)
    if env is None and edges:
        env = edges[0]["node"]
    return env["id"] if env else None


class RailwayClient:
    """Hosting provider client. Every call is retried on transient failures."""

    def __init__(
        self,
        token: str,
        team_id: str | None = None,
        api_url: str = RAILWAY_API_URL,
        timeout: float = 30.0,
        max_attempts: int = 3,
        retry_multiplier: float = 1.0,
    ):
        self.token = token
        self.team_id = team_id
        self.api_url = api_url
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.retry_multiplier = retry_multiplier

    async def graphql(self, query: str, variables: dict[str, Any] | None = None) -> dict:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.retry_multiplier, max=10),
            retry=retry_if_exception_type(TransientProviderError),
            reraise=True,
        ):
            with attempt:
                return await self._post(query, variables or {})

    async def _post(self, query: str, variables: dict[str, Any]) -> dict:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    self.api_url,
                    headers={"Authorization": f"Bearer {self.token}"},
                    json={"query": query, "variables": variables},
                )
        except httpx.TransportError as e:
            logger.warning("railway_transport_error", error=str(e))
            raise TransientProviderError("railway", f"transport error: {e}") from e

        if resp.status_code == 429 or resp.status_code >= 500:
            logger.warning("railway_transient_status", status_code=resp.status_code)
            raise TransientProviderError("railway", resp.text, resp.status_code)
        try:
            body = resp.json()
        except ValueError as e:
            raise ProviderError(
                "railway", f"invalid response: {resp.text}", resp.status_code
            ) from e
        if body.get("errors"):
            message = body["errors"][0].get("message", "unknown error")
            raise ProviderError("railway", message, resp.status_code)
        if not resp.is_success:
            raise ProviderError("railway", resp.text, resp.status_code)
        return body.get("data") or {}

    async def create_project(self, name: str) -> dict:
        """Returns ``{"id", "name", "environment_id"}`` (production environment)."""
        project_input: dict[str, Any] = {"name": name}
        if self.team_id:
            project_input["teamId"] = self.team_id
        data = await self.graphql(PROJECT_CREATE, {"input": project_input})
        project = data["projectCreate"]
        logger.info("railway_project_created", project_id=project["id"], name=name)
        return {
            "id": project["id"],
            "name": project["name"],
            "environment_id": _production_environment(project),
        }

    async def get_project(self, project_id: str) -> dict | None:
        """Like :meth:`create_project`, plus ``services`` mapping service name to id.

        Returns None when the project no longer exists.
        """
        data = await self.graphql(PROJECT_QUERY, {"id": project_id})
        project = data.get("project")
        if not project:
            return None
        return {
            "id": project["id"],
            "name": project["name"],
            "environment_id": _production_environment(project),
            "services": {
                edge["node"]["name"]: edge["node"]["id"]
                for edge in project.get("services", {}).get("edges", [])
            },
        }

    async def create_service(
        self, project_id: str, name: str, repo: str, branch: str = "main"
    ) -> dict:
        data = await self.graphql(
            SERVICE_CREATE,
            {
                "input": {
                    "projectId": project_id,
                    "name": name,
                    "source": {"repo": repo},
                    "branch": branch,
                }
            },
        )
        service = data["serviceCreate"]
        logger.info("railway_service_created", service_id=service["id"], name=name)
        return service

    async def set_variables(
        self, project_id: str, environment_id: str, service_id: str, variables: dict[str, str]
    ) -> None:
        await self.graphql(
            VARIABLES_UPSERT,
            {
                "input": {
                    "projectId": project_id,
                    "environmentId": environment_id,
                    "serviceId": service_id,
                    "variables": variables,
                }
            },
        )
        logger.info("railway_variables_set", service_id=service_id, count=len(variables))

    async def redeploy_service(self, service_id: str, environment_id: str) -> None:
        await self.graphql(
            SERVICE_REDEPLOY, {"serviceId": service_id, "environmentId": environment_id}
        )
        logger.info("railway_service_redeployed", service_id=service_id)

    async def create_service_domain(self, service_id: str, environment_id: str) -> str:
        data = await self.graphql(
            SERVICE_DOMAIN_CREATE,
            {"input": {"serviceId": service_id, "environmentId": environment_id}},
        )
        return data["serviceDomainCreate"]["domain"]

    async def add_custom_domain(
        self, project_id: str, environment_id: str, service_id: str, domain: str
    ) -> None:
        await self.graphql(
            CUSTOM_DOMAIN_CREATE,
            {
                "input": {
                    "projectId": project_id,
                    "environmentId": environment_id,
                    "serviceId": service_id,
                    "domain": domain,
                }
            },
        )
        logger.info("railway_custom_domain_added", domain=domain)

    async def find_project(self, name: str) -> str | None:
        data = await self.graphql(PROJECTS_QUERY, {"teamId": self.team_id})
        for edge in data.get("projects", {}).get("edges", []):
            if edge["node"]["name"] == name:
                return edge["node"]["id"]
        return None

    async def delete_project(self, project_id: str) -> None:
        await self.graphql(PROJECT_DELETE, {"id": project_id})
        logger.info("railway_project_deleted", project_id=project_id)

    async def delete_service(self, service_id: str) -> None:
        await self.graphql(SERVICE_DELETE, {"id": service_id})
        logger.info("railway_service_deleted", service_id=service_id)
