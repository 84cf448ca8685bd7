import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from academic_scheduler.api.deps import get_job_manager
from academic_scheduler.api.routes import availability, generator, health
from academic_scheduler.core.config import get_settings
from academic_scheduler.core.exceptions import AppError
from academic_scheduler.core.middleware import RequestLoggingMiddleware, RequestSizeLimitMiddleware
from academic_scheduler.db.bootstrap import ensure_schema

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    ensure_schema()
    yield
    if get_job_manager.cache_info().currsize:
        get_job_manager().shutdown(wait=False)
        get_job_manager.cache_clear()


async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("Request %s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "details": exc.details},
    )


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)

app.add_middleware(RequestSizeLimitMiddleware, max_bytes=settings.max_request_size_bytes)
app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(generator.router, prefix=settings.api_prefix, tags=["generacion"])
app.include_router(availability.router, prefix=settings.api_prefix, tags=["disponibilidad"])
