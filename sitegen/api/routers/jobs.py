"""Generation jobs router."""

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, status
import structlog

from sitegen.contracts.dto import JobDTO, QueueStatusDTO, SubmitResult
from sitegen.errors import JobValidationError, NotFoundError, QueueUnavailableError
from sitegen.submission import JobSubmitter

from ..dependencies import get_submitter

logger = structlog.get_logger()

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post("/", response_model=SubmitResult, status_code=status.HTTP_202_ACCEPTED)
async def submit_job(
    payload: dict[str, Any] = Body(...),
    submitter: JobSubmitter = Depends(get_submitter),
) -> SubmitResult:
    """Queue a project for generation. Returns immediately with the job id."""
    try:
        return await submitter.submit(payload)
    except JobValidationError as e:
        logger.warning("job_submission_rejected", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": str(e), "errors": e.errors},
        ) from e
    except QueueUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        ) from e


@router.get("/", response_model=QueueStatusDTO)
async def queue_status(submitter: JobSubmitter = Depends(get_submitter)) -> QueueStatusDTO:
    """Job counts per status plus stream depth."""
    return await submitter.queue_status()


@router.get("/{job_id}", response_model=JobDTO)
async def get_job(job_id: str, submitter: JobSubmitter = Depends(get_submitter)) -> JobDTO:
    try:
        return await submitter.get_status(job_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail="Job not found") from e


@router.delete("/{job_id}", response_model=JobDTO)
async def cancel_job(job_id: str, submitter: JobSubmitter = Depends(get_submitter)) -> JobDTO:
    """Cancel a job that has not been picked up yet."""
    try:
        cancelled = await submitter.cancel(job_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail="Job not found") from e
    if not cancelled:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Only queued jobs can be cancelled",
        )
    return await submitter.get_status(job_id)
