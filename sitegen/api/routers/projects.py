"""Generated projects router."""

from fastapi import APIRouter, Depends, HTTPException, status
import structlog

from sitegen.config import Settings
from sitegen.contracts.dto import DeploymentDTO, GeneratedProjectDTO, ProjectStatus
from sitegen.contracts.queues.deploy import DeployMessage
from sitegen.errors import NotFoundError
from sitegen.logging_config import get_correlation_id
from sitegen.maintenance import backfill_urls
from sitegen.queues import DEPLOY_QUEUE
from sitegen.redis_client import RedisStreamClient
from sitegen.storage import ProjectStore

from ..dependencies import get_app_settings, get_store, get_stream

logger = structlog.get_logger()

router = APIRouter(prefix="/projects", tags=["projects"])


async def _get_or_404(store: ProjectStore, project_id: str) -> GeneratedProjectDTO:
    project = await store.get_project(project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.get("/", response_model=list[GeneratedProjectDTO])
async def list_projects(
    status: ProjectStatus | None = None,
    limit: int = 100,
    offset: int = 0,
    store: ProjectStore = Depends(get_store),
) -> list[GeneratedProjectDTO]:
    """List projects, newest first, optionally filtered by status."""
    return await store.list_projects(status=status, limit=limit, offset=offset)


@router.get("/{project_id}", response_model=GeneratedProjectDTO)
async def get_project(
    project_id: str, store: ProjectStore = Depends(get_store)
) -> GeneratedProjectDTO:
    return await _get_or_404(store, project_id)


@router.get("/{project_id}/deployments", response_model=list[DeploymentDTO])
async def list_deployments(
    project_id: str, store: ProjectStore = Depends(get_store)
) -> list[DeploymentDTO]:
    await _get_or_404(store, project_id)
    return await store.list_deployments(project_id)


@router.post("/{project_id}/deploy", status_code=status.HTTP_202_ACCEPTED)
async def request_deploy(
    project_id: str,
    store: ProjectStore = Depends(get_store),
    stream: RedisStreamClient = Depends(get_stream),
) -> dict:
    """Queue a deployment; the worker's deploy consumer performs it."""
    await _get_or_404(store, project_id)
    message = DeployMessage(project_id=project_id)
    if correlation_id := get_correlation_id():
        message.correlation_id = correlation_id
    try:
        await stream.publish_message(DEPLOY_QUEUE, message)
    except Exception as e:
        logger.error("deploy_enqueue_failed", project_id=project_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Deploy queue unavailable"
        ) from e
    logger.info("deploy_enqueued", project_id=project_id, request_id=message.request_id)
    return {"project_id": project_id, "request_id": message.request_id, "status": "queued"}


@router.post("/{project_id}/backfill-urls", response_model=GeneratedProjectDTO)
async def backfill_project_urls(
    project_id: str,
    store: ProjectStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> GeneratedProjectDTO:
    """Fill missing URLs from the latest succeeded deployment. No-op if already set."""
    try:
        await backfill_urls(store, project_id, base_domain=settings.base_domain)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail="Project not found") from e
    return await _get_or_404(store, project_id)
