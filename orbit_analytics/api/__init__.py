"""
API package initialization.

FastAPI router modules for the ORbit analytics backend:
- insights: Insight generation from pre-aggregated analytics
- data_quality: Issue listing, summary, resolve/reopen
- jobs: On-demand detection runs
"""

from fastapi import APIRouter

from orbit_analytics.api.insights import router as insights_router
from orbit_analytics.api.data_quality import router as data_quality_router
from orbit_analytics.api.jobs import router as jobs_router

# Each router carries its own prefix
api_router = APIRouter()
api_router.include_router(insights_router)
api_router.include_router(data_quality_router)
api_router.include_router(jobs_router)

__all__ = [
    "api_router",
    "insights_router",
    "data_quality_router",
    "jobs_router",
]
