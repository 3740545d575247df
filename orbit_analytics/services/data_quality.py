"""
Data-quality issue lifecycle and milestone validation for the ORbit backend.

Issues are rows of `metric_issues`. They are created by detection (milestone
rules here, stale-case rules in stale_case_detection.py), resolved or reopened
by users, and swept to an 'expired' resolution once `expires_at` passes.

Key Features:
- Lookup helpers for issue and resolution types
- Facility issue listing and a severity-weighted quality score
- Resolve / bulk resolve / reopen / expire operations
- Pure milestone rules (missing, negative duration, impossible value)
- Idempotent issue creation shared with stale-case detection

All functions that touch the database take an asyncpg connection so callers
control pooling and transactions. Timestamps default to the current UTC time
and accept an explicit `now` for deterministic tests.

Usage:
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        expired = await expire_old_issues(conn, facility_id)
        checked, found = await run_detection_for_facility(conn, facility_id)
        summary = await calculate_data_quality_summary(conn, facility_id)

See Also:
    - orbit_analytics/services/stale_case_detection.py: Orphaned-workflow rules
    - orbit_analytics/jobs/data_quality_detection.py: Nightly job
    - orbit_analytics/sql/data_quality_queries.py: SQL used here
"""

import json
import logging
import math
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from asyncpg import Connection

from orbit_analytics.models import (
    EXPIRED_RESOLUTION,
    CaseSnapshot,
    DataQualitySummary,
    IssueType,
    MetricIssue,
    MilestoneIssue,
    MilestoneIssueType,
    ResolutionType,
)
from orbit_analytics.services.financial_impact import round_half_up
from orbit_analytics.sql import (
    ALL_ISSUE_TYPES,
    ALL_RESOLUTION_TYPES,
    DURATION_PAIRS,
    EXPIRE_OLD_ISSUES,
    FACILITY_MILESTONE_BY_NAME,
    INSERT_METRIC_ISSUE,
    INVALIDATE_CASE,
    ISSUE_TYPES_BY_NAME,
    OPEN_CASE_ISSUE_EXISTS,
    OPEN_MILESTONE_ISSUE_EXISTS,
    RECENT_CASES_WITH_MILESTONES,
    REOPEN_ISSUE,
    REQUIRED_MILESTONES,
    RESOLUTION_TYPE_BY_NAME,
    RESOLVE_ISSUE,
    RESOLVE_ISSUES,
    UNRESOLVED_ISSUES_FOR_SUMMARY,
    get_metric_issues_query,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

ISSUE_EXPIRY_DAYS = 30
DETECTION_DAYS_BACK = 7
MAX_CASE_DURATION_MINUTES = 1440
EXPIRED_NOTES = 'Auto-expired after 30 days'

# Quality score penalty per unresolved issue, by severity
SEVERITY_PENALTIES: Dict[str, int] = {'error': 10, 'warning': 3, 'info': 1}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with timestamptz values."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# Lookups
# =============================================================================

async def fetch_issue_types(conn: Connection) -> List[IssueType]:
    rows = await conn.fetch(ALL_ISSUE_TYPES)
    return [IssueType(**dict(row)) for row in rows]


async def fetch_resolution_types(conn: Connection) -> List[ResolutionType]:
    rows = await conn.fetch(ALL_RESOLUTION_TYPES)
    return [ResolutionType(**dict(row)) for row in rows]


async def fetch_issue_type_ids(conn: Connection, names: Sequence[str]) -> Dict[str, str]:
    """Map issue type name -> id for the given names; unknown names are absent."""
    rows = await conn.fetch(ISSUE_TYPES_BY_NAME, list(names))
    return {row['name']: row['id'] for row in rows}


async def fetch_resolution_type_id(conn: Connection, name: str) -> Optional[str]:
    row = await conn.fetchrow(RESOLUTION_TYPE_BY_NAME, name)
    return row['id'] if row else None


def _issue_from_row(row: Any) -> MetricIssue:
    data = dict(row)
    details = data.get('details')
    # asyncpg returns jsonb as text unless a codec is registered
    if isinstance(details, str):
        data['details'] = json.loads(details)
    return MetricIssue(**data)


async def fetch_metric_issues(
    conn: Connection,
    facility_id: str,
    unresolved_only: bool = True,
    issue_type_name: Optional[str] = None,
    case_id: Optional[str] = None,
    limit: Optional[int] = None,
) -> List[MetricIssue]:
    """
    List a facility's issues, newest first.

    Args:
        conn: Database connection.
        facility_id: Facility to list.
        unresolved_only: Exclude resolved and expired issues.
        issue_type_name: Restrict to one issue type name.
        case_id: Restrict to one case.
        limit: Maximum rows to return.

    Returns:
        List[MetricIssue] with issue type name and case number joined in.
    """
    query = get_metric_issues_query(
        unresolved_only=unresolved_only,
        filter_issue_type=issue_type_name is not None,
        filter_case=case_id is not None,
        with_limit=limit is not None,
    )
    params: List[Any] = [facility_id]
    for value in (issue_type_name, case_id, limit):
        if value is not None:
            params.append(value)

    rows = await conn.fetch(query, *params)
    return [_issue_from_row(row) for row in rows]


# =============================================================================
# Summary
# =============================================================================

def summarize_issues(rows: Sequence[Any], now: Optional[datetime] = None) -> DataQualitySummary:
    """
    Roll up unresolved issue rows into counts and a quality score.

    The score starts at 100 and loses 10 per error, 3 per warning and 1 per
    info issue, clamped to 0..100. Issues expiring within 7 days of `now`
    count toward `expiringThisWeek`.
    """
    now = as_utc(now or utc_now())
    week_ahead = now + timedelta(days=7)

    by_type: Dict[str, int] = {}
    by_severity: Dict[str, int] = {'info': 0, 'warning': 0, 'error': 0}
    expiring = 0

    for row in rows:
        name = row['issue_type_name']
        if name:
            by_type[name] = by_type.get(name, 0) + 1
        severity = row['severity']
        if severity in by_severity:
            by_severity[severity] += 1
        expires_at = row['expires_at']
        if expires_at is not None and as_utc(expires_at) < week_ahead:
            expiring += 1

    penalty = sum(by_severity[level] * weight for level, weight in SEVERITY_PENALTIES.items())

    return DataQualitySummary(
        totalUnresolved=len(rows),
        byType=by_type,
        bySeverity=by_severity,
        qualityScore=max(0, min(100, 100 - penalty)),
        expiringThisWeek=expiring,
    )


async def calculate_data_quality_summary(
    conn: Connection,
    facility_id: str,
    now: Optional[datetime] = None
) -> DataQualitySummary:
    rows = await conn.fetch(UNRESOLVED_ISSUES_FOR_SUMMARY, facility_id)
    return summarize_issues(rows, now)


# =============================================================================
# Resolution Lifecycle
# =============================================================================

async def resolve_issue(
    conn: Connection,
    issue_id: str,
    user_id: str,
    resolution_type_name: str,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> bool:
    """
    Resolve one issue with the named resolution type.

    Returns:
        False when the resolution type is unknown or the issue does not exist.
    """
    resolution_type_id = await fetch_resolution_type_id(conn, resolution_type_name)
    if resolution_type_id is None:
        logger.warning(f"Resolution type not found: {resolution_type_name}")
        return False

    row = await conn.fetchrow(
        RESOLVE_ISSUE, issue_id, resolution_type_id, now or utc_now(), user_id, notes or None
    )
    return row is not None


async def resolve_multiple_issues(
    conn: Connection,
    issue_ids: Sequence[str],
    user_id: str,
    resolution_type_name: str,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> int:
    """Resolve several issues at once; returns how many rows were updated."""
    if not issue_ids:
        return 0

    resolution_type_id = await fetch_resolution_type_id(conn, resolution_type_name)
    if resolution_type_id is None:
        logger.warning(f"Resolution type not found: {resolution_type_name}")
        return 0

    rows = await conn.fetch(
        RESOLVE_ISSUES, list(issue_ids), resolution_type_id, now or utc_now(), user_id, notes or None
    )
    return len(rows)


async def reopen_issue(
    conn: Connection,
    issue_id: str,
    now: Optional[datetime] = None,
    expiry_days: int = ISSUE_EXPIRY_DAYS,
) -> bool:
    """
    Clear an issue's resolution and push its expiry `expiry_days` out from now.

    Returns:
        False when no issue has this id.

    Raises:
        asyncpg.UniqueViolationError: If a newer open issue already exists for the
            same case, type and milestone (metric_issues_open_unique).
    """
    expires_at = (now or utc_now()) + timedelta(days=expiry_days)
    row = await conn.fetchrow(REOPEN_ISSUE, issue_id, expires_at)
    return row is not None


async def expire_old_issues(
    conn: Connection,
    facility_id: str,
    now: Optional[datetime] = None
) -> int:
    """
    Resolve a facility's unresolved issues whose expiry has passed.

    Stale-case issues have no expiry and are never touched. Returns 0 when the
    'expired' resolution type has not been provisioned.
    """
    resolution_type_id = await fetch_resolution_type_id(conn, EXPIRED_RESOLUTION)
    if resolution_type_id is None:
        logger.info(f"Skipping expiry for facility {facility_id}: no '{EXPIRED_RESOLUTION}' resolution type")
        return 0

    rows = await conn.fetch(
        EXPIRE_OLD_ISSUES, facility_id, now or utc_now(), resolution_type_id, EXPIRED_NOTES
    )
    return len(rows)


def get_days_until_expiration(expires_at: datetime, now: Optional[datetime] = None) -> int:
    """Whole days until expiry, rounded up (negative once expired)."""
    delta = as_utc(expires_at) - as_utc(now or utc_now())
    return math.ceil(delta.total_seconds() / 86400)


def format_detected_value(issue: MetricIssue) -> str:
    """
    Human-readable detected value with its unit and expected range.

    Example:
        >>> format_detected_value(MetricIssue(..., detected_value=-12, expected_min=0))
        '-12 min (expected ≥0 min)'
    """
    if issue.detected_value is None:
        return 'N/A'

    value = round_half_up(issue.detected_value)
    details = issue.details or {}
    hours = "hour" if value == 1 else "hours"

    if 'days_overdue' in details:
        return f"{value} day{'' if value == 1 else 's'} overdue"
    if 'hours_since_activity' in details:
        return f"{value} {hours} since activity"
    if 'hours_elapsed' in details:
        return f"{value} {hours} in progress"

    low = round_half_up(issue.expected_min) if issue.expected_min is not None else None
    high = round_half_up(issue.expected_max) if issue.expected_max is not None else None

    if low is not None and high is not None:
        range_str = f" (expected {low}-{high} min)"
    elif high is not None:
        range_str = f" (expected ≤{high} min)"
    elif low is not None:
        range_str = f" (expected ≥{low} min)"
    else:
        range_str = ''

    return f"{value} min{range_str}"


# =============================================================================
# Issue Creation
# =============================================================================

async def create_issue_if_not_exists(
    conn: Connection,
    facility_id: str,
    case_id: str,
    issue_type_id: str,
    detected_at: datetime,
    facility_milestone_id: Optional[str] = None,
    detected_value: Optional[float] = None,
    expected_min: Optional[float] = None,
    expected_max: Optional[float] = None,
    details: Optional[Dict[str, Any]] = None,
    expires_at: Optional[datetime] = None,
    match_milestone: bool = True,
    invalidate_case: bool = False,
) -> bool:
    """
    Insert an issue unless an unresolved one already covers it.

    The pre-check matches on (case, issue type), plus the facility milestone
    when `match_milestone` is set. The insert itself is ON CONFLICT DO NOTHING
    against the open-issue unique index, so a concurrent duplicate is dropped
    rather than raised.

    Args:
        invalidate_case: Clear cases.data_validated after a successful insert.

    Returns:
        True if a new issue row was written.

    Raises:
        asyncpg.PostgresError: If a statement fails.
    """
    if match_milestone:
        existing = await conn.fetchrow(OPEN_MILESTONE_ISSUE_EXISTS, case_id, issue_type_id, facility_milestone_id)
    else:
        existing = await conn.fetchrow(OPEN_CASE_ISSUE_EXISTS, case_id, issue_type_id)
    if existing:
        return False

    inserted = await conn.fetchrow(
        INSERT_METRIC_ISSUE,
        facility_id,
        case_id,
        issue_type_id,
        facility_milestone_id,
        detected_value,
        expected_min,
        expected_max,
        json.dumps(details) if details is not None else None,
        detected_at,
        expires_at,
    )
    if inserted is None:
        return False

    if invalidate_case:
        await conn.execute(INVALIDATE_CASE, case_id)

    return True


# =============================================================================
# Milestone Rules
# =============================================================================

def _minutes_between(start: datetime, end: datetime) -> float:
    return (as_utc(end) - as_utc(start)).total_seconds() / 60


def _recorded(snapshot: CaseSnapshot, name: str) -> Tuple[Optional[datetime], Optional[str]]:
    return snapshot.milestones.get(name, (None, None))


def check_missing_milestones(snapshot: CaseSnapshot) -> List[MilestoneIssue]:
    """Completed cases must have every required milestone recorded."""
    if not snapshot.is_completed:
        return []

    issues: List[MilestoneIssue] = []
    for name in REQUIRED_MILESTONES:
        recorded_at, facility_milestone_id = _recorded(snapshot, name)
        if recorded_at is None:
            issues.append(MilestoneIssue(
                case_id=snapshot.case_id,
                case_number=snapshot.case_number,
                issue_type=MilestoneIssueType.MISSING.value,
                milestone_name=name,
                facility_milestone_id=facility_milestone_id,
            ))
    return issues


def check_negative_durations(snapshot: CaseSnapshot) -> List[MilestoneIssue]:
    """Each (start, end) milestone pair must not run backwards in time."""
    issues: List[MilestoneIssue] = []
    for start, end in DURATION_PAIRS:
        start_at, _ = _recorded(snapshot, start)
        end_at, end_milestone_id = _recorded(snapshot, end)
        if start_at is None or end_at is None:
            continue
        minutes = _minutes_between(start_at, end_at)
        if minutes < 0:
            issues.append(MilestoneIssue(
                case_id=snapshot.case_id,
                case_number=snapshot.case_number,
                issue_type=MilestoneIssueType.NEGATIVE_DURATION.value,
                milestone_name=end,
                facility_milestone_id=end_milestone_id,
                detected_value=minutes,
                expected_min=0,
                details={'from_milestone': start, 'to_milestone': end},
            ))
    return issues


def check_impossible_values(
    snapshot: CaseSnapshot,
    max_minutes: int = MAX_CASE_DURATION_MINUTES
) -> List[MilestoneIssue]:
    """Patient-in to patient-out may not exceed `max_minutes`."""
    patient_in, _ = _recorded(snapshot, 'patient_in')
    patient_out, out_milestone_id = _recorded(snapshot, 'patient_out')
    if patient_in is None or patient_out is None:
        return []

    minutes = _minutes_between(patient_in, patient_out)
    if minutes <= max_minutes:
        return []

    return [MilestoneIssue(
        case_id=snapshot.case_id,
        case_number=snapshot.case_number,
        issue_type=MilestoneIssueType.IMPOSSIBLE_VALUE.value,
        milestone_name='patient_out',
        facility_milestone_id=out_milestone_id,
        detected_value=minutes,
        expected_max=max_minutes,
    )]


def evaluate_case_milestones(
    snapshot: CaseSnapshot,
    max_minutes: int = MAX_CASE_DURATION_MINUTES
) -> List[MilestoneIssue]:
    """Run all milestone rules on one case. Cancelled cases are skipped."""
    if snapshot.is_cancelled:
        return []
    return (
        check_missing_milestones(snapshot)
        + check_negative_durations(snapshot)
        + check_impossible_values(snapshot, max_minutes)
    )


def build_case_snapshots(rows: Sequence[Any]) -> List[CaseSnapshot]:
    """Group flat case/milestone rows into one CaseSnapshot per case, preserving order."""
    snapshots: Dict[str, CaseSnapshot] = {}
    for row in rows:
        case_id = row['case_id']
        snapshot = snapshots.get(case_id)
        if snapshot is None:
            snapshot = CaseSnapshot(
                case_id=case_id,
                case_number=row['case_number'],
                status=row['status_name'],
                scheduled_date=row['scheduled_date'],
            )
            snapshots[case_id] = snapshot
        name = row['milestone_name']
        if name and row['recorded_at'] is not None:
            snapshot.milestones[name] = (row['recorded_at'], row['facility_milestone_id'])
    return list(snapshots.values())


async def run_detection_for_facility(
    conn: Connection,
    facility_id: str,
    now: Optional[datetime] = None,
    days_back: int = DETECTION_DAYS_BACK,
    expiry_days: int = ISSUE_EXPIRY_DAYS,
    max_minutes: int = MAX_CASE_DURATION_MINUTES,
) -> Tuple[int, int]:
    """
    Validate milestones on a facility's recent cases and record new issues.

    Args:
        conn: Database connection.
        facility_id: Facility to check.
        now: Detection time (defaults to current UTC time).
        days_back: Window of scheduled dates to check.
        expiry_days: Lifetime of newly created issues.
        max_minutes: Impossible-duration threshold.

    Returns:
        (cases_checked, issues_created). Cancelled cases count as checked.
    """
    now = as_utc(now or utc_now())
    since: date = (now - timedelta(days=days_back)).date()

    rows = await conn.fetch(RECENT_CASES_WITH_MILESTONES, facility_id, since)
    snapshots = build_case_snapshots(rows)

    type_ids = await fetch_issue_type_ids(conn, [t.value for t in MilestoneIssueType])
    milestone_ids: Dict[str, Optional[str]] = {}
    expires_at = now + timedelta(days=expiry_days)
    created = 0

    for snapshot in snapshots:
        for issue in evaluate_case_milestones(snapshot, max_minutes):
            issue_type_id = type_ids.get(issue.issue_type)
            if issue_type_id is None:
                logger.info(f"Issue type '{issue.issue_type}' not configured, skipping")
                continue

            facility_milestone_id = issue.facility_milestone_id
            if facility_milestone_id is None:
                if issue.milestone_name not in milestone_ids:
                    found = await conn.fetchrow(FACILITY_MILESTONE_BY_NAME, facility_id, issue.milestone_name)
                    milestone_ids[issue.milestone_name] = found['id'] if found else None
                facility_milestone_id = milestone_ids[issue.milestone_name]

            if await create_issue_if_not_exists(
                conn,
                facility_id=facility_id,
                case_id=issue.case_id,
                issue_type_id=issue_type_id,
                detected_at=now,
                facility_milestone_id=facility_milestone_id,
                detected_value=issue.detected_value,
                expected_min=issue.expected_min,
                expected_max=issue.expected_max,
                details=issue.details or None,
                expires_at=expires_at,
            ):
                created += 1

    return len(snapshots), created
