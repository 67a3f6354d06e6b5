import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query, Response, status

from newsreel.api.deps import get_executor, get_store
from newsreel.api.models import JobCancelResponse, JobCreateRequest, JobDetailResponse, JobListResponse, JobResponse, JobStatusValue, LanguageValue, PublicationResponse
from newsreel.jobs.executor import JobExecutor
from newsreel.jobs.models import JobFilter, JobSpec
from newsreel.services import jobs as job_service
from newsreel.storage.job_store import JobStore

router = APIRouter()
logger = logging.getLogger("newsreel.api.routes.jobs")


@router.get("", response_model=JobListResponse)
async def list_jobs(  # noqa: B008
  page: int = Query(default=1, ge=1),
  limit: int = Query(default=10, ge=1, le=100),
  status_filter: JobStatusValue | None = Query(default=None, alias="status"),
  topic: str | None = Query(default=None, max_length=100),
  language: LanguageValue | None = Query(default=None),
  created_from: datetime | None = Query(default=None),
  created_to: datetime | None = Query(default=None),
  store: JobStore = Depends(get_store),  # noqa: B008
) -> JobListResponse:
  """List jobs newest first with optional filters."""
  job_filter = JobFilter(status=status_filter, topic=topic or None, language=language, created_from=created_from, created_to=created_to)
  result = await job_service.list_jobs(store, job_filter, page=page, limit=limit)
  return JobListResponse(items=[JobResponse.model_validate(item) for item in result.items], total=result.total, page=result.page, limit=result.limit, total_pages=result.total_pages)


@router.get("/{job_id}", response_model=JobDetailResponse)
async def get_job(  # noqa: B008
  job_id: str,
  store: JobStore = Depends(get_store),  # noqa: B008
) -> JobDetailResponse:
  """Fetch a job and its derived artifacts."""
  record, artifacts = await job_service.get_job(store, job_id)
  return JobDetailResponse.from_records(record, artifacts)


@router.post("", response_model=JobResponse, status_code=status.HTTP_201_CREATED)
async def create_job(  # noqa: B008
  request: JobCreateRequest,
  store: JobStore = Depends(get_store),  # noqa: B008
  executor: JobExecutor = Depends(get_executor),  # noqa: B008
) -> JobResponse:
  """Create a job and start it in the background."""
  spec = JobSpec(topic=request.topic, language=request.language, target_length=request.target_length, auto_publish=request.auto_publish)
  record = await job_service.create_job(store, executor, spec)
  return JobResponse.model_validate(record)


@router.post("/{job_id}/publish", response_model=PublicationResponse)
async def publish_job(  # noqa: B008
  job_id: str,
  executor: JobExecutor = Depends(get_executor),  # noqa: B008
) -> PublicationResponse:
  """Publish the rendered video of a completed job."""
  publication = await job_service.publish_job(executor, job_id)
  return PublicationResponse.model_validate(publication)


@router.post("/{job_id}/cancel", response_model=JobCancelResponse)
async def cancel_job(  # noqa: B008
  job_id: str,
  executor: JobExecutor = Depends(get_executor),  # noqa: B008
) -> JobCancelResponse:
  """Request cancellation of a queued or running job."""
  accepted = await job_service.cancel_job(executor, job_id)
  return JobCancelResponse(job_id=job_id, cancel_requested=accepted)


@router.delete("/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_job(  # noqa: B008
  job_id: str,
  store: JobStore = Depends(get_store),  # noqa: B008
) -> Response:
  """Delete a job and everything derived from it."""
  await job_service.delete_job(store, job_id)
  return Response(status_code=status.HTTP_204_NO_CONTENT)
