"""
Enumeration definitions for the ORbit analytics backend.

All enums inherit from both `str` and `Enum` so Pydantic models serialize them
as their plain string values. The values are wire contracts: the dashboard
selects card styling by `InsightSeverity` and opens detail panels by
`DrillThroughType`, and the data-quality tables store issue types by name.
"""

from enum import Enum
from typing import Dict


class InsightSeverity(str, Enum):
    """
    Priority of a generated insight.

    Ranked critical < warning < positive < info (see SEVERITY_ORDER); a lower
    rank sorts first and survives stricter minimum-severity filters.
    """
    CRITICAL = "critical"
    WARNING = "warning"
    POSITIVE = "positive"
    INFO = "info"


SEVERITY_ORDER: Dict[InsightSeverity, int] = {
    InsightSeverity.CRITICAL: 0,
    InsightSeverity.WARNING: 1,
    InsightSeverity.POSITIVE: 2,
    InsightSeverity.INFO: 3,
}


class InsightCategory(str, Enum):
    """Metric dimension an insight was derived from (one per generator)."""
    FIRST_CASE_DELAYS = "first_case_delays"
    TURNOVER_EFFICIENCY = "turnover_efficiency"
    CALLBACK_OPTIMIZATION = "callback_optimization"
    UTILIZATION_GAP = "utilization_gap"
    CANCELLATION_TREND = "cancellation_trend"
    NON_OPERATIVE_TIME = "non_operative_time"
    SCHEDULING_PATTERN = "scheduling_pattern"


class DrillThroughType(str, Enum):
    """
    Detail panel the dashboard opens for an insight.

    This is the join key between engine output and presentation routing;
    values must not change.
    """
    CALLBACK = "callback"
    FCOTS = "fcots"
    UTILIZATION = "utilization"
    TURNOVER = "turnover"
    CANCELLATION = "cancellation"
    NON_OP_TIME = "non_op_time"
    SCHEDULING = "scheduling"


class DeltaType(str, Enum):
    """Direction of a period-over-period change."""
    INCREASE = "increase"
    DECREASE = "decrease"
    UNCHANGED = "unchanged"


class TrackerColor(str, Enum):
    """Daily tracker cell color. Only 'green' counts as a good day."""
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"
    SLATE = "slate"
    GRAY = "gray"


class SurgeonCallbackStatus(str, Enum):
    """Callback timing classification for a surgeon with flip-room data."""
    CALL_SOONER = "call_sooner"
    ON_TRACK = "on_track"
    CALL_LATER = "call_later"


class IssueSeverity(str, Enum):
    """Severity stored on the issue_types lookup table."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class StaleIssueType(str, Enum):
    """Issue types raised for orphaned case workflows. These never auto-expire."""
    STALE_IN_PROGRESS = "stale_in_progress"
    ABANDONED_SCHEDULED = "abandoned_scheduled"
    NO_ACTIVITY = "no_activity"


class MilestoneIssueType(str, Enum):
    """Issue types raised by the nightly milestone validation rules."""
    MISSING = "missing"
    NEGATIVE_DURATION = "negative_duration"
    IMPOSSIBLE_VALUE = "impossible_value"


class CaseStatus(str, Enum):
    """Case lifecycle states referenced by detection rules (case_statuses.name)."""
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Resolution type applied by the expiry sweep
EXPIRED_RESOLUTION = "expired"
