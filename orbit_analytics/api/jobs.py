"""
FastAPI router for triggering data-quality jobs on demand.

- POST /jobs/data-quality-detection - Run the nightly job now (all facilities)
- POST /jobs/stale-cases/{facility_id} - Stale-case detection for one facility

The nightly job is normally run by a scheduler through
`python -m orbit_analytics.jobs.data_quality_detection`; these endpoints let
an operator re-run it without shell access.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse

from orbit_analytics.core.dependencies import DBSessionDep, SettingsDep
from orbit_analytics.jobs.data_quality_detection import run_data_quality_detection
from orbit_analytics.models import StaleDetectionResult
from orbit_analytics.services.stale_case_detection import StaleThresholds, detect_stale_cases

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post("/data-quality-detection")
async def trigger_data_quality_detection(
    notify: bool = Query(False, description="Post the Slack digest after the run")
) -> Any:
    """
    Run data-quality detection across all facilities.

    Returns:
        200 with { success, summary, results }, or 500 with { success: false, error }
        when facilities could not be listed.
    """
    result: Dict[str, Any] = await run_data_quality_detection(notify=notify)
    if not result['success']:
        return JSONResponse(status_code=500, content=result)
    return result


@router.post("/stale-cases/{facility_id}", response_model=StaleDetectionResult)
async def trigger_stale_case_detection(
    facility_id: str,
    db: DBSessionDep,
    settings: SettingsDep,
) -> StaleDetectionResult:
    try:
        return await detect_stale_cases(db, facility_id, thresholds=StaleThresholds.from_settings(settings))
    except Exception as e:
        logger.error(f"Stale detection failed for facility {facility_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Stale detection failed: {str(e)}")
