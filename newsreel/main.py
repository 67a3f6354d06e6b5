from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from newsreel import __version__
from newsreel.api.models import HealthResponse
from newsreel.api.routes import jobs, system
from newsreel.config import get_settings
from newsreel.core.errors import JobValidationError, NotFoundError
from newsreel.core.exceptions import global_exception_handler, http_exception_handler, job_validation_exception_handler, not_found_exception_handler, request_validation_exception_handler
from newsreel.core.lifespan import lifespan


def create_app() -> FastAPI:
  settings = get_settings()
  application = FastAPI(title="Newsreel", version=__version__, lifespan=lifespan)

  application.add_middleware(CORSMiddleware, allow_origins=list(settings.allowed_origins), allow_credentials=True, allow_methods=["GET", "POST", "DELETE", "OPTIONS"], allow_headers=["content-type", "authorization"])

  application.add_exception_handler(Exception, global_exception_handler)
  application.add_exception_handler(HTTPException, http_exception_handler)
  application.add_exception_handler(RequestValidationError, request_validation_exception_handler)
  application.add_exception_handler(NotFoundError, not_found_exception_handler)
  application.add_exception_handler(JobValidationError, job_validation_exception_handler)

  @application.get("/api/health", response_model=HealthResponse)
  async def health_check() -> HealthResponse:
    """Return a simple health status."""
    return HealthResponse(status="ok", version=__version__)

  application.include_router(jobs.router, prefix="/api/jobs", tags=["jobs"])
  application.include_router(system.router, prefix="/api", tags=["system"])
  return application


app = create_app()
