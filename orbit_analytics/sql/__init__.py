"""
SQL Query Module for the ORbit analytics backend.

Provides parameterized SQL for data-quality detection and the metric_issues
lifecycle, keeping data access separate from detection logic.

Submodules:
    data_quality_queries: Lookup, stale-case candidate, milestone validation
                          and issue lifecycle queries.

Example usage:
    from orbit_analytics.sql import LIST_FACILITIES, get_metric_issues_query

    rows = await conn.fetch(LIST_FACILITIES)
    sql = get_metric_issues_query(unresolved_only=True, with_limit=True)
"""

from orbit_analytics.sql.data_quality_queries import (
    LIST_FACILITIES,
    ISSUE_TYPES_BY_NAME,
    ALL_ISSUE_TYPES,
    ALL_RESOLUTION_TYPES,
    RESOLUTION_TYPE_BY_NAME,
    STALE_IN_PROGRESS_CANDIDATES,
    ABANDONED_SCHEDULED_CANDIDATES,
    NO_ACTIVITY_CANDIDATES,
    RECENT_CASES_WITH_MILESTONES,
    FACILITY_MILESTONE_BY_NAME,
    OPEN_CASE_ISSUE_EXISTS,
    OPEN_MILESTONE_ISSUE_EXISTS,
    INSERT_METRIC_ISSUE,
    INVALIDATE_CASE,
    EXPIRE_OLD_ISSUES,
    RESOLVE_ISSUE,
    RESOLVE_ISSUES,
    REOPEN_ISSUE,
    UNRESOLVED_ISSUES_FOR_SUMMARY,
    get_metric_issues_query,
    DURATION_PAIRS,
    REQUIRED_MILESTONES,
)

__all__ = [
    'LIST_FACILITIES',
    'ISSUE_TYPES_BY_NAME',
    'ALL_ISSUE_TYPES',
    'ALL_RESOLUTION_TYPES',
    'RESOLUTION_TYPE_BY_NAME',
    'STALE_IN_PROGRESS_CANDIDATES',
    'ABANDONED_SCHEDULED_CANDIDATES',
    'NO_ACTIVITY_CANDIDATES',
    'RECENT_CASES_WITH_MILESTONES',
    'FACILITY_MILESTONE_BY_NAME',
    'OPEN_CASE_ISSUE_EXISTS',
    'OPEN_MILESTONE_ISSUE_EXISTS',
    'INSERT_METRIC_ISSUE',
    'INVALIDATE_CASE',
    'EXPIRE_OLD_ISSUES',
    'RESOLVE_ISSUE',
    'RESOLVE_ISSUES',
    'REOPEN_ISSUE',
    'UNRESOLVED_ISSUES_FOR_SUMMARY',
    'get_metric_issues_query',
    'DURATION_PAIRS',
    'REQUIRED_MILESTONES',
]
