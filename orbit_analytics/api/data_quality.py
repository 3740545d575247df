"""
FastAPI router for data-quality issues.

Key Endpoints:
- GET  /data-quality/issue-types - Issue type catalog
- GET  /data-quality/resolution-types - Resolution type catalog
- GET  /data-quality/{facility_id}/issues - List a facility's issues
- GET  /data-quality/{facility_id}/summary - Counts and quality score
- POST /data-quality/issues/{issue_id}/resolve - Resolve one issue
- POST /data-quality/issues/resolve - Resolve several issues
- POST /data-quality/issues/{issue_id}/reopen - Reopen a resolved issue

Dependencies:
- orbit_analytics/core/dependencies.py: DBSessionDep for pooled connections
- orbit_analytics/services/data_quality.py: Issue lifecycle operations
"""

import logging
from typing import Any, Dict, List, Optional

import asyncpg
from fastapi import APIRouter, HTTPException, Query

from orbit_analytics.core.dependencies import DBSessionDep, SettingsDep
from orbit_analytics.models import (
    BulkResolveRequest,
    DataQualitySummary,
    IssueType,
    MetricIssue,
    ResolutionType,
    ResolveIssueRequest,
)
from orbit_analytics.services.data_quality import (
    calculate_data_quality_summary,
    fetch_issue_types,
    fetch_metric_issues,
    fetch_resolution_types,
    reopen_issue,
    resolve_issue,
    resolve_multiple_issues,
)

logger = logging.getLogger(__name__)

# Maximum allowed limit for listing issues
MAX_LIST_LIMIT: int = 500

router = APIRouter(prefix="/data-quality", tags=["data-quality"])


# =============================================================================
# Catalogs
# =============================================================================

@router.get("/issue-types", response_model=List[IssueType])
async def list_issue_types(db: DBSessionDep) -> List[IssueType]:
    try:
        return await fetch_issue_types(db)
    except Exception as e:
        logger.error(f"Error fetching issue types: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to fetch issue types: {str(e)}")


@router.get("/resolution-types", response_model=List[ResolutionType])
async def list_resolution_types(db: DBSessionDep) -> List[ResolutionType]:
    try:
        return await fetch_resolution_types(db)
    except Exception as e:
        logger.error(f"Error fetching resolution types: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to fetch resolution types: {str(e)}")


# =============================================================================
# Facility Issues
# =============================================================================

@router.get("/{facility_id}/issues", response_model=List[MetricIssue])
async def list_issues(
    facility_id: str,
    db: DBSessionDep,
    unresolvedOnly: bool = Query(True, description="Exclude resolved and expired issues"),
    issueType: Optional[str] = Query(None, description="Filter by issue type name"),
    caseId: Optional[str] = Query(None, description="Filter by case id"),
    limit: Optional[int] = Query(None, ge=1, le=MAX_LIST_LIMIT),
) -> List[MetricIssue]:
    """
    List a facility's data-quality issues, newest first.

    Raises:
        HTTPException 500: If the query fails.
    """
    try:
        return await fetch_metric_issues(
            db,
            facility_id,
            unresolved_only=unresolvedOnly,
            issue_type_name=issueType,
            case_id=caseId,
            limit=limit,
        )
    except Exception as e:
        logger.error(f"Error fetching issues for facility {facility_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to fetch issues: {str(e)}")


@router.get("/{facility_id}/summary", response_model=DataQualitySummary)
async def get_summary(facility_id: str, db: DBSessionDep) -> DataQualitySummary:
    """Unresolved issue counts by type and severity, with the 0-100 quality score."""
    try:
        return await calculate_data_quality_summary(db, facility_id)
    except Exception as e:
        logger.error(f"Error computing summary for facility {facility_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to compute summary: {str(e)}")


# =============================================================================
# Resolution
# =============================================================================

@router.post("/issues/resolve", response_model=dict)
async def resolve_issues_bulk(request: BulkResolveRequest, db: DBSessionDep) -> Dict[str, Any]:
    """
    Resolve several issues with one resolution type.

    Returns:
        { success: true, resolvedCount: n }
    """
    try:
        count = await resolve_multiple_issues(
            db, request.issueIds, request.userId, request.resolutionType, request.notes
        )
    except Exception as e:
        logger.error(f"Error bulk resolving issues: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to resolve issues: {str(e)}")

    logger.info(f"Resolved {count}/{len(request.issueIds)} issues as {request.resolutionType}")
    return {"success": True, "resolvedCount": count}


@router.post("/issues/{issue_id}/resolve", response_model=dict)
async def resolve_single_issue(
    issue_id: str,
    request: ResolveIssueRequest,
    db: DBSessionDep,
) -> Dict[str, Any]:
    """
    Resolve one issue.

    Raises:
        HTTPException 404: If the issue or resolution type does not exist.
        HTTPException 500: If the update fails.
    """
    try:
        resolved = await resolve_issue(db, issue_id, request.userId, request.resolutionType, request.notes)
        if not resolved:
            raise HTTPException(
                status_code=404,
                detail=f"Issue {issue_id} or resolution type '{request.resolutionType}' not found"
            )
        return {"success": True, "issueId": issue_id}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error resolving issue {issue_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to resolve issue: {str(e)}")


@router.post("/issues/{issue_id}/reopen", response_model=dict)
async def reopen_single_issue(issue_id: str, db: DBSessionDep, settings: SettingsDep) -> Dict[str, Any]:
    """
    Clear an issue's resolution and restart its expiry window.

    Raises:
        HTTPException 404: If the issue does not exist.
        HTTPException 409: If a newer open issue already covers the same case and type.
        HTTPException 500: If the update fails.
    """
    try:
        reopened = await reopen_issue(db, issue_id, expiry_days=settings.issue_expiry_days)
        if not reopened:
            raise HTTPException(status_code=404, detail=f"Issue {issue_id} not found")
        return {"success": True, "issueId": issue_id}
    except HTTPException:
        raise
    except asyncpg.UniqueViolationError:
        logger.info(f"Reopen of issue {issue_id} rejected: an open duplicate exists")
        raise HTTPException(
            status_code=409,
            detail=f"Cannot reopen issue {issue_id}: an open issue already exists for this case and type"
        )
    except Exception as e:
        logger.error(f"Error reopening issue {issue_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to reopen issue: {str(e)}")
