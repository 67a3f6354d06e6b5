import logging

from fastapi import APIRouter, Depends

from newsreel.api.deps import get_collaborators, get_executor, get_scheduler, get_store
from newsreel.api.models import AutomationStatusResponse, MetricsResponse, ServiceStatusResponse, SyncResponse, SystemStatusResponse
from newsreel.collaborators.factory import Collaborators
from newsreel.config import Settings, get_settings
from newsreel.jobs.executor import JobExecutor
from newsreel.jobs.scheduler import AutomationScheduler
from newsreel.storage.job_store import JobStore

router = APIRouter()
logger = logging.getLogger("newsreel.api.routes.system")


@router.get("/metrics", response_model=MetricsResponse)
async def get_metrics(store: JobStore = Depends(get_store)) -> MetricsResponse:  # noqa: B008
  """Return dashboard counters."""
  return MetricsResponse.model_validate(await store.get_metrics())


@router.get("/system/status", response_model=SystemStatusResponse)
async def get_system_status(  # noqa: B008
  settings: Settings = Depends(get_settings),  # noqa: B008
  collaborators: Collaborators = Depends(get_collaborators),  # noqa: B008
  scheduler: AutomationScheduler = Depends(get_scheduler),  # noqa: B008
  executor: JobExecutor = Depends(get_executor),  # noqa: B008
) -> SystemStatusResponse:
  """Report collaborator health and automation state."""
  statuses = await collaborators.check_status()
  return SystemStatusResponse(
    services={name: ServiceStatusResponse(status=item.status, message=item.message) for name, item in statuses.items()},
    automation=AutomationStatusResponse(enabled=settings.automation_enabled, running=scheduler.running, paused=scheduler.paused, topics=list(scheduler.topics)),
    jobs_in_flight=executor.in_flight,
  )


@router.post("/system/sync", response_model=SyncResponse)
async def trigger_sync(scheduler: AutomationScheduler = Depends(get_scheduler)) -> SyncResponse:  # noqa: B008
  """Run a news sync immediately, even while automation is paused."""
  report = await scheduler.trigger_news_sync()
  return SyncResponse(jobs_created=report.jobs_created, created=report.created, skipped=report.skipped, errors=report.errors)


@router.post("/system/pause", response_model=AutomationStatusResponse)
async def pause_automation(  # noqa: B008
  settings: Settings = Depends(get_settings),  # noqa: B008
  scheduler: AutomationScheduler = Depends(get_scheduler),  # noqa: B008
) -> AutomationStatusResponse:
  scheduler.pause_automation()
  return AutomationStatusResponse(enabled=settings.automation_enabled, running=scheduler.running, paused=scheduler.paused, topics=list(scheduler.topics))


@router.post("/system/resume", response_model=AutomationStatusResponse)
async def resume_automation(  # noqa: B008
  settings: Settings = Depends(get_settings),  # noqa: B008
  scheduler: AutomationScheduler = Depends(get_scheduler),  # noqa: B008
) -> AutomationStatusResponse:
  scheduler.resume_automation()
  return AutomationStatusResponse(enabled=settings.automation_enabled, running=scheduler.running, paused=scheduler.paused, topics=list(scheduler.topics))
