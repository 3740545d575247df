"""
FastAPI router for analytics insights.

POST /insights takes a pre-aggregated AnalyticsOverview and returns ranked,
actionable insights. The engine is pure: no database access, so the endpoint
needs no connection.

Revenue assumptions come from the request config first, then the facility
default OR_HOURLY_RATE setting, then the built-in defaults.
"""

import logging

from fastapi import APIRouter, HTTPException

from orbit_analytics.core.dependencies import SettingsDep
from orbit_analytics.models import InsightsConfig, InsightsRequest, InsightsResponse
from orbit_analytics.services.financial_impact import resolve_insights_config
from orbit_analytics.services.insights_engine import generate_all_insights, rank_insights

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/insights", tags=["insights"])


@router.post("", response_model=InsightsResponse)
async def create_insights(request: InsightsRequest, settings: SettingsDep) -> InsightsResponse:
    """
    Generate insights for one facility period.

    Args:
        request: Analytics overview plus optional insight config.
        settings: Application settings (OR hourly rate fallback).

    Returns:
        InsightsResponse with the ranked insights and before/after counts.

    Raises:
        HTTPException 500: If insight generation fails unexpectedly.
    """
    config = request.config or InsightsConfig()
    if config.orHourlyRate is None and settings.or_hourly_rate:
        config = config.model_copy(update={'orHourlyRate': settings.or_hourly_rate})

    try:
        cfg = resolve_insights_config(config)
        generated = generate_all_insights(request.analytics, cfg)
        ranked = rank_insights(generated, cfg)
    except Exception as e:
        logger.error(f"Error generating insights: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to generate insights: {str(e)}"
        )

    logger.debug(f"POST /insights: {len(generated)} generated, {len(ranked)} shown")
    return InsightsResponse(insights=ranked, generatedCount=len(generated), shownCount=len(ranked))
