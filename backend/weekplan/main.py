import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from weekplan.api.routes import health, substitutions, teachers, timetable
from weekplan.core.config import get_settings
from weekplan.core.exceptions import AppError
from weekplan.db.bootstrap import ensure_runtime_schema_compatibility
from weekplan.services.coordinator import SchedulingCoordinator

settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    logging.getLogger("weekplan").setLevel(settings.log_level.upper())
    ensure_runtime_schema_compatibility()
    yield


async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "details": exc.details},
    )


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)
# One lock table per process; every request-scoped service shares it.
app.state.coordinator = SchedulingCoordinator(timeout_seconds=settings.lock_timeout_seconds)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(timetable.router, prefix=f"{settings.api_prefix}/timetable", tags=["timetable"])
app.include_router(teachers.router, prefix=settings.api_prefix, tags=["teachers"])
app.include_router(substitutions.router, prefix=settings.api_prefix, tags=["substitutions"])
