"""
Stale-case detection for the ORbit data-quality pipeline.

Finds cases stuck in a workflow state without the follow-up activity a real
procedure would produce, and records one unresolved metric issue per case and
rule. Three rules are evaluated:

- stale_in_progress: in progress, patient in recorded more than 24 hours ago
- abandoned_scheduled: still scheduled 2+ days after the scheduled date
- no_activity: in progress, latest milestone more than 4 hours old (cases
  with no recorded milestones are exempt; they may simply not have started)

Each rule is a SQL candidate fetch plus a pure evaluator, so the thresholds
and arithmetic can be tested without a database. Stale issues never expire
on their own: an orphaned workflow does not become valid with time.

Usage:
    async with pool.acquire() as conn:
        result = await detect_stale_cases(conn, facility_id)
        print(f"{result.detected} detected, {result.created} created")

See Also:
    - orbit_analytics/services/data_quality.py: Shared issue creation
    - orbit_analytics/jobs/data_quality_detection.py: Nightly job
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

import asyncpg
from asyncpg import Connection

from orbit_analytics.core.config import Settings
from orbit_analytics.core.database import get_db_pool
from orbit_analytics.models import StaleCase, StaleDetectionResult, StaleIssueType
from orbit_analytics.services.data_quality import (
    as_utc,
    create_issue_if_not_exists,
    fetch_issue_type_ids,
    utc_now,
)
from orbit_analytics.sql import (
    ABANDONED_SCHEDULED_CANDIDATES,
    LIST_FACILITIES,
    NO_ACTIVITY_CANDIDATES,
    STALE_IN_PROGRESS_CANDIDATES,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StaleThresholds:
    """Time windows for the three stale-case rules."""

    in_progress_hours: int = 24
    scheduled_days: int = 2
    no_activity_hours: int = 4

    @classmethod
    def from_settings(cls, settings: Settings) -> 'StaleThresholds':
        return cls(
            in_progress_hours=settings.stale_in_progress_hours,
            scheduled_days=settings.abandoned_scheduled_days,
            no_activity_hours=settings.no_activity_hours,
        )


def _hours_since(moment: datetime, now: datetime) -> float:
    return (now - as_utc(moment)).total_seconds() / 3600


def _round_tenth(value: float) -> float:
    return math.floor(value * 10 + 0.5) / 10


# =============================================================================
# Pure Evaluators
# =============================================================================

def evaluate_stale_in_progress(
    rows: Sequence[Any],
    now: datetime,
    hours: int = 24
) -> List[StaleCase]:
    """
    In-progress cases whose patient-in milestone is older than `hours`.

    Args:
        rows: Candidate rows with case_id, case_number, facility_id, patient_in_at.
        now: Evaluation time.
        hours: Threshold in hours.

    Returns:
        One StaleCase per qualifying row, with hours_elapsed rounded to 0.1.
    """
    now = as_utc(now)
    cutoff = now - timedelta(hours=hours)
    found: List[StaleCase] = []

    for row in rows:
        patient_in = row['patient_in_at']
        if patient_in is None or as_utc(patient_in) >= cutoff:
            continue
        elapsed = _round_tenth(_hours_since(patient_in, now))
        found.append(StaleCase(
            case_id=row['case_id'],
            case_number=row['case_number'],
            facility_id=row['facility_id'],
            issue_type=StaleIssueType.STALE_IN_PROGRESS.value,
            detected_value=elapsed,
            details={'hours_elapsed': elapsed},
        ))
    return found


def evaluate_abandoned_scheduled(
    rows: Sequence[Any],
    now: datetime,
    days: int = 2
) -> List[StaleCase]:
    """
    Scheduled cases whose scheduled date is strictly before today minus `days`.

    days_overdue counts whole days from midnight UTC of the scheduled date.
    """
    now = as_utc(now)
    cutoff: date = (now - timedelta(days=days)).date()
    found: List[StaleCase] = []

    for row in rows:
        scheduled = row['scheduled_date']
        if scheduled is None:
            continue
        if isinstance(scheduled, datetime):
            scheduled = scheduled.date()
        if scheduled >= cutoff:
            continue
        midnight = datetime.combine(scheduled, time.min, tzinfo=timezone.utc)
        overdue = math.floor((now - midnight).total_seconds() / 86400)
        found.append(StaleCase(
            case_id=row['case_id'],
            case_number=row['case_number'],
            facility_id=row['facility_id'],
            issue_type=StaleIssueType.ABANDONED_SCHEDULED.value,
            detected_value=overdue,
            details={'days_overdue': overdue},
        ))
    return found


def evaluate_no_activity(
    rows: Sequence[Any],
    now: datetime,
    hours: int = 4
) -> List[StaleCase]:
    """In-progress cases whose most recent milestone is older than `hours`."""
    now = as_utc(now)
    cutoff = now - timedelta(hours=hours)
    found: List[StaleCase] = []

    for row in rows:
        last_activity = row['last_activity_at']
        # No milestones recorded yet
        if last_activity is None:
            continue
        last_activity = as_utc(last_activity)
        if last_activity >= cutoff:
            continue
        elapsed = _round_tenth(_hours_since(last_activity, now))
        found.append(StaleCase(
            case_id=row['case_id'],
            case_number=row['case_number'],
            facility_id=row['facility_id'],
            issue_type=StaleIssueType.NO_ACTIVITY.value,
            detected_value=elapsed,
            details={
                'hours_elapsed': elapsed,
                'hours_since_activity': elapsed,
                'last_activity': last_activity.isoformat(),
            },
        ))
    return found


# =============================================================================
# Candidate Fetchers
# =============================================================================

async def _fetch_candidates(conn: Connection, query: str, rule: str, *params: Any) -> List[Any]:
    try:
        return await conn.fetch(query, *params)
    except asyncpg.PostgresError as e:
        logger.warning(f"Stale rule '{rule}' query failed, treating as no cases: {e}")
        return []


async def find_stale_in_progress(
    conn: Connection,
    facility_id: str,
    now: datetime,
    hours: int = 24
) -> List[StaleCase]:
    rows = await _fetch_candidates(
        conn, STALE_IN_PROGRESS_CANDIDATES, StaleIssueType.STALE_IN_PROGRESS.value,
        facility_id, now - timedelta(hours=hours),
    )
    return evaluate_stale_in_progress(rows, now, hours)


async def find_abandoned_scheduled(
    conn: Connection,
    facility_id: str,
    now: datetime,
    days: int = 2
) -> List[StaleCase]:
    rows = await _fetch_candidates(
        conn, ABANDONED_SCHEDULED_CANDIDATES, StaleIssueType.ABANDONED_SCHEDULED.value,
        facility_id, (now - timedelta(days=days)).date(),
    )
    return evaluate_abandoned_scheduled(rows, now, days)


async def find_no_activity(
    conn: Connection,
    facility_id: str,
    now: datetime,
    hours: int = 4
) -> List[StaleCase]:
    rows = await _fetch_candidates(
        conn, NO_ACTIVITY_CANDIDATES, StaleIssueType.NO_ACTIVITY.value,
        facility_id, now - timedelta(hours=hours),
    )
    return evaluate_no_activity(rows, now, hours)


# =============================================================================
# Detection
# =============================================================================

async def detect_stale_cases(
    conn: Connection,
    facility_id: str,
    now: Optional[datetime] = None,
    thresholds: Optional[StaleThresholds] = None,
) -> StaleDetectionResult:
    """
    Run all stale-case rules for one facility and record new issues.

    Rules whose issue type has not been provisioned are skipped entirely.
    A failed insert is reported in `errors` and the remaining cases are
    still processed.

    Args:
        conn: Database connection.
        facility_id: Facility to scan.
        now: Detection time (defaults to current UTC time).
        thresholds: Rule windows (defaults to 24h / 2d / 4h).

    Returns:
        StaleDetectionResult with detected and created counts.
    """
    now = as_utc(now or utc_now())
    thresholds = thresholds or StaleThresholds()
    result = StaleDetectionResult()

    type_ids = await fetch_issue_type_ids(conn, [t.value for t in StaleIssueType])

    rules = [
        (StaleIssueType.STALE_IN_PROGRESS, find_stale_in_progress, thresholds.in_progress_hours),
        (StaleIssueType.ABANDONED_SCHEDULED, find_abandoned_scheduled, thresholds.scheduled_days),
        (StaleIssueType.NO_ACTIVITY, find_no_activity, thresholds.no_activity_hours),
    ]

    stale_cases: List[StaleCase] = []
    for issue_type, finder, window in rules:
        if issue_type.value not in type_ids:
            logger.info(f"Issue type '{issue_type.value}' not configured, skipping rule")
            continue
        stale_cases.extend(await finder(conn, facility_id, now, window))

    result.detected = len(stale_cases)

    for stale in stale_cases:
        try:
            created = await create_issue_if_not_exists(
                conn,
                facility_id=stale.facility_id,
                case_id=stale.case_id,
                issue_type_id=type_ids[stale.issue_type],
                detected_at=now,
                detected_value=stale.detected_value,
                details=stale.details,
                expires_at=None,
                match_milestone=False,
                invalidate_case=True,
            )
        except asyncpg.PostgresError as e:
            result.errors.append(f"Failed to create issue for {stale.case_number}: {e}")
            continue
        if created:
            result.created += 1

    return result


async def detect_stale_cases_all_facilities(
    now: Optional[datetime] = None,
    thresholds: Optional[StaleThresholds] = None,
) -> Dict[str, StaleDetectionResult]:
    """Run stale detection for every facility, keyed by facility id."""
    pool = await get_db_pool()
    results: Dict[str, StaleDetectionResult] = {}

    async with pool.acquire() as conn:
        facilities = await conn.fetch(LIST_FACILITIES)
        for facility in facilities:
            result = await detect_stale_cases(conn, facility['id'], now, thresholds)
            results[facility['id']] = result
            logger.info(
                f"Stale detection for {facility['name']}: "
                f"{result.detected} found, {result.created} created"
            )

    return results
