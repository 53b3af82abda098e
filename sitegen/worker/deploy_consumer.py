"""Consumes ``deploy:queue`` and runs the deployment trigger."""

import time

from pydantic import ValidationError
import structlog

from sitegen.contracts.dto import DeploymentStatus
from sitegen.contracts.queues.deploy import DeployMessage, DeployResult
from sitegen.deploy import DeploymentTrigger
from sitegen.errors import SitegenError
from sitegen.logging_config import log_context
from sitegen.queues import DEPLOY_RESULTS
from sitegen.redis_client import RedisStreamClient, StreamMessage

logger = structlog.get_logger()


class DeployConsumer:
    """Deployments are not retried automatically; every message is acknowledged."""

    def __init__(self, trigger: DeploymentTrigger, stream: RedisStreamClient):
        self.trigger = trigger
        self.stream = stream

    async def handle(self, message: StreamMessage, reclaimed: bool = False) -> bool:
        try:
            deploy_message = DeployMessage.model_validate(message.data)
        except ValidationError as e:
            logger.error("invalid_deploy_message", message_id=message.message_id, error=str(e))
            return True

        started = time.monotonic()
        with log_context(
            project_id=deploy_message.project_id, correlation_id=deploy_message.correlation_id
        ):
            result = await self._deploy(deploy_message)
        result.duration_ms = int((time.monotonic() - started) * 1000)

        try:
            await self.stream.publish(DEPLOY_RESULTS, result.model_dump(mode="json"))
        except Exception as e:
            logger.warning("deploy_result_publish_failed", error=str(e))
        return True

    async def _deploy(self, message: DeployMessage) -> DeployResult:
        try:
            deployment = await self.trigger.deploy(message.project_id)
        except SitegenError as e:
            logger.error("deploy_rejected", error=str(e), error_type=type(e).__name__)
            return DeployResult(
                request_id=message.request_id,
                status="failed",
                error=str(e),
                project_id=message.project_id,
            )

        if deployment.status != DeploymentStatus.SUCCEEDED:
            return DeployResult(
                request_id=message.request_id,
                status="failed",
                error=deployment.error,
                project_id=message.project_id,
                deployment_id=deployment.id,
            )
        return DeployResult(
            request_id=message.request_id,
            status="success",
            project_id=message.project_id,
            deployment_id=deployment.id,
            frontend_url=deployment.urls.get("frontend"),
            backend_url=deployment.urls.get("backend"),
            admin_url=deployment.urls.get("admin"),
        )
