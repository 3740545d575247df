"""
Data Quality Queries Module for the ORbit analytics backend.

Provides parameterized PostgreSQL queries for data-quality detection and the
metric_issues lifecycle:
- Lookup tables (facilities, issue_types, resolution_types)
- Stale-case candidate selection (in-progress, scheduled, idle cases)
- Recent cases with recorded milestones for validation rules
- Issue creation, expiry, resolution and reopening

Idempotent issue creation relies on a partial unique index over open issues,
so INSERT ... ON CONFLICT DO NOTHING suppresses duplicates even when two
detection runs race past the pre-check:

    CREATE UNIQUE INDEX metric_issues_open_unique
        ON metric_issues (
            case_id,
            issue_type_id,
            COALESCE(facility_milestone_id, '00000000-0000-0000-0000-000000000000'::uuid)
        )
        WHERE resolved_at IS NULL;

All statements use asyncpg $n placeholders; no values are interpolated.
"""

from typing import List, Tuple


# =============================================================================
# LOOKUP QUERIES
# =============================================================================

LIST_FACILITIES = """
    SELECT id::text AS id, name
    FROM facilities
    ORDER BY name
"""

ISSUE_TYPES_BY_NAME = """
    SELECT id::text AS id, name
    FROM issue_types
    WHERE name = ANY($1::text[])
"""

ALL_ISSUE_TYPES = """
    SELECT id::text AS id, name, display_name, description, severity
    FROM issue_types
    ORDER BY severity, name
"""

ALL_RESOLUTION_TYPES = """
    SELECT id::text AS id, name, display_name, description
    FROM resolution_types
    ORDER BY name
"""

RESOLUTION_TYPE_BY_NAME = """
    SELECT id::text AS id
    FROM resolution_types
    WHERE name = $1
"""


# =============================================================================
# STALE CASE CANDIDATES
# =============================================================================

# $1 facility_id, $2 cutoff timestamp (patient_in recorded before this)
STALE_IN_PROGRESS_CANDIDATES = """
    SELECT
        c.id::text AS case_id,
        c.case_number,
        c.facility_id::text AS facility_id,
        MIN(cm.recorded_at) AS patient_in_at
    FROM cases c
    JOIN case_statuses cs ON cs.id = c.status_id
    JOIN case_milestones cm ON cm.case_id = c.id
    JOIN facility_milestones fm ON fm.id = cm.facility_milestone_id
    WHERE c.facility_id = $1
      AND cs.name = 'in_progress'
      AND fm.name = 'patient_in'
      AND cm.recorded_at IS NOT NULL
      AND cm.recorded_at < $2
    GROUP BY c.id, c.case_number, c.facility_id
"""

# $1 facility_id, $2 cutoff date (scheduled strictly before this)
ABANDONED_SCHEDULED_CANDIDATES = """
    SELECT
        c.id::text AS case_id,
        c.case_number,
        c.facility_id::text AS facility_id,
        c.scheduled_date
    FROM cases c
    JOIN case_statuses cs ON cs.id = c.status_id
    WHERE c.facility_id = $1
      AND cs.name = 'scheduled'
      AND c.scheduled_date < $2
"""

# $1 facility_id, $2 cutoff timestamp (latest milestone before this).
# Cases without any recorded milestone have a NULL MAX and drop out of HAVING.
NO_ACTIVITY_CANDIDATES = """
    SELECT
        c.id::text AS case_id,
        c.case_number,
        c.facility_id::text AS facility_id,
        MAX(cm.recorded_at) AS last_activity_at
    FROM cases c
    JOIN case_statuses cs ON cs.id = c.status_id
    LEFT JOIN case_milestones cm ON cm.case_id = c.id AND cm.recorded_at IS NOT NULL
    WHERE c.facility_id = $1
      AND cs.name = 'in_progress'
    GROUP BY c.id, c.case_number, c.facility_id
    HAVING MAX(cm.recorded_at) < $2
"""


# =============================================================================
# MILESTONE VALIDATION
# =============================================================================

# $1 facility_id, $2 earliest scheduled_date. One row per recorded milestone;
# cases without milestones appear once with NULL milestone columns.
RECENT_CASES_WITH_MILESTONES = """
    SELECT
        c.id::text AS case_id,
        c.case_number,
        c.scheduled_date,
        cs.name AS status_name,
        fm.name AS milestone_name,
        cm.facility_milestone_id::text AS facility_milestone_id,
        cm.recorded_at
    FROM cases c
    LEFT JOIN case_statuses cs ON cs.id = c.status_id
    LEFT JOIN case_milestones cm ON cm.case_id = c.id
    LEFT JOIN facility_milestones fm ON fm.id = cm.facility_milestone_id
    WHERE c.facility_id = $1
      AND c.scheduled_date >= $2
    ORDER BY c.scheduled_date DESC, c.id
"""

# $1 facility_id, $2 milestone name
FACILITY_MILESTONE_BY_NAME = """
    SELECT id::text AS id
    FROM facility_milestones
    WHERE facility_id = $1 AND name = $2
    LIMIT 1
"""


# =============================================================================
# ISSUE CREATION
# =============================================================================

# $1 case_id, $2 issue_type_id
OPEN_CASE_ISSUE_EXISTS = """
    SELECT id::text AS id
    FROM metric_issues
    WHERE case_id = $1
      AND issue_type_id = $2
      AND resolved_at IS NULL
    LIMIT 1
"""

# $1 case_id, $2 issue_type_id, $3 facility_milestone_id (nullable)
OPEN_MILESTONE_ISSUE_EXISTS = """
    SELECT id::text AS id
    FROM metric_issues
    WHERE case_id = $1
      AND issue_type_id = $2
      AND facility_milestone_id IS NOT DISTINCT FROM $3::uuid
      AND resolved_at IS NULL
    LIMIT 1
"""

# $1 facility_id, $2 case_id, $3 issue_type_id, $4 facility_milestone_id,
# $5 detected_value, $6 expected_min, $7 expected_max, $8 details (json text),
# $9 detected_at, $10 expires_at
INSERT_METRIC_ISSUE = """
    INSERT INTO metric_issues (
        facility_id, case_id, issue_type_id, facility_milestone_id,
        detected_value, expected_min, expected_max, details,
        detected_at, expires_at
    )
    VALUES ($1, $2, $3, $4::uuid, $5, $6, $7, $8::jsonb, $9, $10)
    ON CONFLICT DO NOTHING
    RETURNING id::text AS id
"""

# $1 case_id
INVALIDATE_CASE = """
    UPDATE cases
    SET data_validated = false
    WHERE id = $1
"""


# =============================================================================
# ISSUE LIFECYCLE
# =============================================================================

# $1 facility_id, $2 now, $3 resolution_type_id, $4 notes
EXPIRE_OLD_ISSUES = """
    UPDATE metric_issues
    SET resolved_at = $2,
        resolution_type_id = $3,
        resolution_notes = $4
    WHERE facility_id = $1
      AND resolved_at IS NULL
      AND expires_at IS NOT NULL
      AND expires_at < $2
    RETURNING id::text AS id
"""

# $1 issue_id, $2 resolution_type_id, $3 resolved_at, $4 resolved_by, $5 notes
RESOLVE_ISSUE = """
    UPDATE metric_issues
    SET resolution_type_id = $2,
        resolved_at = $3,
        resolved_by = $4,
        resolution_notes = $5
    WHERE id = $1
    RETURNING id::text AS id
"""

# $1 issue ids, $2 resolution_type_id, $3 resolved_at, $4 resolved_by, $5 notes
RESOLVE_ISSUES = """
    UPDATE metric_issues
    SET resolution_type_id = $2,
        resolved_at = $3,
        resolved_by = $4,
        resolution_notes = $5
    WHERE id = ANY($1::uuid[])
    RETURNING id::text AS id
"""

# $1 issue_id, $2 new expires_at
REOPEN_ISSUE = """
    UPDATE metric_issues
    SET resolution_type_id = NULL,
        resolved_at = NULL,
        resolved_by = NULL,
        resolution_notes = NULL,
        expires_at = $2
    WHERE id = $1
    RETURNING id::text AS id
"""

# $1 facility_id
UNRESOLVED_ISSUES_FOR_SUMMARY = """
    SELECT
        mi.id::text AS id,
        mi.expires_at,
        it.name AS issue_type_name,
        it.severity
    FROM metric_issues mi
    LEFT JOIN issue_types it ON it.id = mi.issue_type_id
    WHERE mi.facility_id = $1
      AND mi.resolved_at IS NULL
"""


# =============================================================================
# ISSUE LISTING
# =============================================================================

def get_metric_issues_query(
    unresolved_only: bool = True,
    filter_issue_type: bool = False,
    filter_case: bool = False,
    with_limit: bool = False,
) -> str:
    """
    Build the metric_issues listing query for a facility.

    Placeholders are numbered in this order: $1 facility_id, then issue type
    name, case id and limit for each filter that is enabled.

    Args:
        unresolved_only: Restrict to issues without a resolution.
        filter_issue_type: Add an issue_types.name filter.
        filter_case: Add a case_id filter.
        with_limit: Add a LIMIT placeholder.

    Returns:
        Parameterized PostgreSQL query string, newest issues first.
    """
    conditions: List[str] = ["mi.facility_id = $1"]
    next_param = 2

    if unresolved_only:
        conditions.append("mi.resolved_at IS NULL")
    if filter_issue_type:
        conditions.append(f"it.name = ${next_param}")
        next_param += 1
    if filter_case:
        conditions.append(f"mi.case_id = ${next_param}")
        next_param += 1

    limit_clause = f"LIMIT ${next_param}" if with_limit else ""

    return f"""
    SELECT
        mi.id::text AS id,
        mi.facility_id::text AS facility_id,
        mi.case_id::text AS case_id,
        mi.issue_type_id::text AS issue_type_id,
        mi.facility_milestone_id::text AS facility_milestone_id,
        mi.detected_value,
        mi.expected_min,
        mi.expected_max,
        mi.details,
        mi.resolution_type_id::text AS resolution_type_id,
        mi.resolved_at,
        mi.resolved_by::text AS resolved_by,
        mi.resolution_notes,
        mi.detected_at,
        mi.expires_at,
        it.name AS issue_type_name,
        c.case_number
    FROM metric_issues mi
    LEFT JOIN issue_types it ON it.id = mi.issue_type_id
    LEFT JOIN cases c ON c.id = mi.case_id
    WHERE {' AND '.join(conditions)}
    ORDER BY mi.detected_at DESC
    {limit_clause}
    """


# Negative-duration milestone pairs: (start, end)
DURATION_PAIRS: List[Tuple[str, str]] = [
    ('patient_in', 'patient_out'),
    ('anes_start', 'anes_end'),
    ('incision', 'closing'),
    ('closing', 'closing_complete'),
]

# Milestones every completed case must have recorded
REQUIRED_MILESTONES: List[str] = ['patient_in', 'incision', 'closing', 'patient_out']
