from sitegen.contracts.base import BaseMessage, BaseResult


class DeployMessage(BaseMessage):
    """Publish a generated project to the hosting providers."""

    project_id: str
    job_id: str | None = None


class DeployResult(BaseResult):
    """Deploy outcome. Stream: deploy:results"""

    project_id: str
    deployment_id: str | None = None
    frontend_url: str | None = None
    admin_url: str | None = None
    backend_url: str | None = None
