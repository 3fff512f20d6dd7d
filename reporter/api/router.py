from fastapi import APIRouter

from reporter.api.jobs import router as jobs_router
from reporter.api.profiles import router as profiles_router
from reporter.api.tasks import router as tasks_router

api_router = APIRouter()

# API routes at /api/*
api_router.include_router(tasks_router, prefix="/api", tags=["tasks"])
api_router.include_router(profiles_router, prefix="/api", tags=["profiles"])
api_router.include_router(jobs_router, prefix="/api", tags=["jobs"])
