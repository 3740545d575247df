"""
Pydantic request/response models for the ORbit analytics backend.

Three groups of contracts live here:

- Metric aggregates: the pre-computed `AnalyticsOverview` handed to the
  insight engine by the analytics aggregation layer. Field names are camelCase
  because they are the JSON contract of that layer.
- Insights: the `Insight` cards produced by the engine plus its configuration.
- Data quality: `metric_issues` rows and the results of the detection job.
  Row models keep the snake_case column names of the database.

All models use Pydantic v2 syntax.
"""

from datetime import date as DateType, datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from orbit_analytics.models.enums import (
    CaseStatus,
    DeltaType,
    DrillThroughType,
    InsightCategory,
    InsightSeverity,
    IssueSeverity,
    SurgeonCallbackStatus,
)


# =============================================================================
# Metric Aggregate Models
# =============================================================================


class DailyTrackerData(BaseModel):
    """One day of a KPI's daily trace."""

    date: str = Field(..., description="Calendar date, YYYY-MM-DD")
    color: str = Field(..., description="Tracker color; 'green' marks a good day")
    value: Optional[float] = Field(default=None, description="Day's metric value")
    tooltip: Optional[str] = Field(default=None, description="Display tooltip")


class KPIResult(BaseModel):
    """
    Common shape of every named metric in AnalyticsOverview.

    `subtitle` is display text. Subclasses carry the structured numbers that
    older producers only embedded in the subtitle.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "value": 31,
                "displayValue": "31%",
                "subtitle": "11 late of 16 first cases (wheels-in, 2 min grace)",
                "target": 85,
                "targetMet": False,
                "delta": 4,
                "deltaType": "decrease",
                "dailyData": [{"date": "2025-02-03", "color": "red"}],
            }
        }
    )

    value: float = Field(default=0, description="Current-period measurement")
    displayValue: str = Field(default="", description="Pre-formatted value for narratives")
    subtitle: str = Field(default="", description="Human-readable summary line")
    target: Optional[float] = Field(default=None, description="Facility-configured goal")
    targetMet: bool = Field(default=False)
    delta: Optional[float] = Field(default=None, description="Change versus prior period")
    deltaType: Optional[DeltaType] = Field(default=None)
    dailyData: List[DailyTrackerData] = Field(default_factory=list)


class FCOTSResult(KPIResult):
    """First case on-time start rate."""

    lateCount: Optional[int] = Field(default=None, ge=0, description="First cases started late")
    totalFirstCases: Optional[int] = Field(default=None, ge=0, description="First cases in period")


class TurnoverResult(KPIResult):
    """Turnover median with its compliance threshold and sample size."""

    thresholdMinutes: Optional[float] = Field(default=None, description="Per-turnover minute threshold")
    complianceRate: Optional[float] = Field(default=None, description="Percent of turnovers under threshold")
    count: Optional[int] = Field(default=None, ge=0, description="Number of turnovers (or flips)")


class NonOperativeTimeResult(KPIResult):
    """Average non-operative minutes per case."""

    percentOfCaseTime: Optional[float] = Field(default=None, description="Non-op share of total case time")


class CancellationResult(KPIResult):
    """Cancellation rate with same-day breakdown."""

    sameDayCount: int = Field(default=0, ge=0)
    sameDayRate: float = Field(default=0, ge=0)
    totalCancelledCount: int = Field(default=0, ge=0)


class RoomUtilizationDetail(BaseModel):
    """Per-room utilization for the period."""

    roomId: str
    roomName: str
    utilization: float = Field(..., description="Percent of available time used")
    usedMinutes: float = Field(default=0, description="Patient-in-room minutes")
    availableHours: float = Field(default=10, description="Configured or default daily hours")
    caseCount: int = Field(default=0)
    daysActive: int = Field(default=0, description="Days the room was used")
    usingRealHours: bool = Field(default=False, description="False when default 10h availability is assumed")


class ORUtilizationResult(KPIResult):
    """OR utilization with the room breakdown."""

    roomBreakdown: List[RoomUtilizationDetail] = Field(default_factory=list)
    roomsWithRealHours: int = Field(default=0)
    roomsWithDefaultHours: int = Field(default=0)


class IdleGap(BaseModel):
    """Surgeon idle time between two consecutive cases."""

    fromCase: str
    toCase: str
    idleMinutes: float
    optimalCallDelta: float = 0
    gapType: str = Field(default="same_room", description="'flip' or 'same_room'")
    fromRoom: Optional[str] = None
    toRoom: Optional[str] = None


class FlipRoomAnalysis(BaseModel):
    """One surgeon-day of room transitions."""

    surgeonId: str
    surgeonName: str
    date: str
    idleGaps: List[IdleGap] = Field(default_factory=list)
    avgIdleTime: float = 0
    totalIdleTime: float = 0
    isFlipRoom: bool = False


class SurgeonIdleSummary(BaseModel):
    """Per-surgeon idle and callback statistics for the period."""

    surgeonId: str
    surgeonName: str
    caseCount: int = 0
    gapCount: int = 0
    medianIdleTime: float = 0
    medianCallbackDelta: float = 0
    flipGapCount: int = 0
    sameRoomGapCount: int = 0
    medianFlipIdle: float = 0
    medianSameRoomIdle: float = 0
    hasFlipData: bool = False
    status: SurgeonCallbackStatus = SurgeonCallbackStatus.ON_TRACK
    statusLabel: str = ""


class AnalyticsOverview(BaseModel):
    """
    Facility-scoped, period-scoped analytics bundle consumed by the insight engine.

    `periodLengthDays` is the explicit length of the reporting window. When it
    is absent, daily rates fall back to assuming roughly 20 completed cases per
    operating day.
    """

    totalCases: int = 0
    completedCases: int = 0
    cancelledCases: int = 0

    fcots: FCOTSResult = Field(default_factory=FCOTSResult)
    turnoverTime: TurnoverResult = Field(default_factory=TurnoverResult)
    orUtilization: ORUtilizationResult = Field(default_factory=ORUtilizationResult)
    caseVolume: KPIResult = Field(default_factory=KPIResult)
    cancellationRate: CancellationResult = Field(default_factory=CancellationResult)
    nonOperativeTime: NonOperativeTimeResult = Field(default_factory=NonOperativeTimeResult)
    standardSurgicalTurnover: TurnoverResult = Field(default_factory=TurnoverResult)
    flipRoomTime: TurnoverResult = Field(default_factory=TurnoverResult)

    flipRoomAnalysis: List[FlipRoomAnalysis] = Field(default_factory=list)
    surgeonIdleSummaries: List[SurgeonIdleSummary] = Field(default_factory=list)

    avgTotalCaseTime: float = 0
    avgSurgicalTime: float = 0
    avgPreOpTime: float = 0
    avgAnesthesiaTime: float = 0
    avgClosingTime: float = 0
    avgEmergenceTime: float = 0

    periodLengthDays: Optional[int] = Field(default=None, ge=1)


# =============================================================================
# Insight Models
# =============================================================================


class Insight(BaseModel):
    """
    One actionable finding rendered as a dashboard card.

    `id` is a fixed literal per finding type, so a single call yields at most
    one insight per id.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "fcots-delays",
                "category": "first_case_delays",
                "severity": "critical",
                "title": "First Case On-Time Below Target",
                "body": "11 of 16 first cases started late this period.",
                "action": "View delay breakdown →",
                "actionRoute": "/analytics/fcots",
                "financialImpact": "~$238K/year estimated impact",
                "drillThroughType": "fcots",
                "metadata": {"lateCount": 11, "totalFirstCases": 16},
            }
        }
    )

    id: str
    category: InsightCategory
    severity: InsightSeverity
    title: str
    body: str
    action: str
    actionRoute: Optional[str] = None
    financialImpact: Optional[str] = Field(default=None, description="e.g. '~$180K/year estimated impact'")
    drillThroughType: Optional[DrillThroughType] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class InsightsConfig(BaseModel):
    """Facility revenue assumptions and output limits. All fields optional."""

    orHourlyRate: Optional[float] = Field(
        default=None, description="$/hr; takes precedence over revenuePerORMinute"
    )
    revenuePerORMinute: Optional[float] = Field(default=None, gt=0)
    revenuePerCase: Optional[float] = Field(default=None, gt=0)
    operatingDaysPerYear: Optional[int] = Field(default=None, gt=0)
    maxInsights: Optional[int] = Field(default=None, ge=0)
    minSeverityToShow: Optional[InsightSeverity] = None


class ResolvedInsightsConfig(BaseModel):
    """InsightsConfig with defaults applied and the hourly rate folded in."""

    model_config = ConfigDict(frozen=True)

    revenuePerORMinute: float
    revenuePerCase: float
    operatingDaysPerYear: int
    maxInsights: int
    minSeverityToShow: InsightSeverity


class InsightsRequest(BaseModel):
    """Request body for POST /insights."""

    analytics: AnalyticsOverview
    config: Optional[InsightsConfig] = None


class InsightsResponse(BaseModel):
    """Response body for POST /insights."""

    insights: List[Insight]
    generatedCount: int = Field(..., description="Insights produced before filtering and truncation")
    shownCount: int


# =============================================================================
# Data Quality Models
# =============================================================================


class IssueType(BaseModel):
    """Row of the issue_types lookup table."""

    id: str
    name: str
    display_name: str = ""
    description: Optional[str] = None
    severity: IssueSeverity = IssueSeverity.WARNING


class ResolutionType(BaseModel):
    """Row of the resolution_types lookup table."""

    id: str
    name: str
    display_name: str = ""
    description: Optional[str] = None


class MetricIssue(BaseModel):
    """A persisted data-quality issue (metric_issues row)."""

    id: str
    facility_id: str
    case_id: str
    issue_type_id: str
    facility_milestone_id: Optional[str] = None
    detected_value: Optional[float] = None
    expected_min: Optional[float] = None
    expected_max: Optional[float] = None
    details: Optional[Dict[str, Any]] = None
    resolution_type_id: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    resolution_notes: Optional[str] = None
    detected_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    issue_type_name: Optional[str] = None
    case_number: Optional[str] = None


class DataQualitySummary(BaseModel):
    """Unresolved-issue roll-up for one facility."""

    totalUnresolved: int = 0
    byType: Dict[str, int] = Field(default_factory=dict)
    bySeverity: Dict[str, int] = Field(
        default_factory=lambda: {"info": 0, "warning": 0, "error": 0}
    )
    qualityScore: int = 100
    expiringThisWeek: int = 0


class StaleCase(BaseModel):
    """A case matched by one of the stale-case rules."""

    case_id: str
    case_number: str
    facility_id: str
    issue_type: str
    detected_value: Optional[float] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class StaleDetectionResult(BaseModel):
    """Outcome of stale-case detection for one facility."""

    detected: int = 0
    created: int = 0
    errors: List[str] = Field(default_factory=list)


class CaseSnapshot(BaseModel):
    """A recent case with its recorded milestones, used by milestone rules."""

    case_id: str
    case_number: str
    status: Optional[str] = None
    scheduled_date: Optional[DateType] = None
    # milestone name -> (recorded_at, facility_milestone_id)
    milestones: Dict[str, Tuple[Optional[datetime], Optional[str]]] = Field(default_factory=dict)

    @property
    def is_completed(self) -> bool:
        return self.status == CaseStatus.COMPLETED.value

    @property
    def is_cancelled(self) -> bool:
        return self.status == CaseStatus.CANCELLED.value


class MilestoneIssue(BaseModel):
    """A milestone validation failure awaiting persistence."""

    case_id: str
    case_number: str
    issue_type: str
    milestone_name: str
    facility_milestone_id: Optional[str] = None
    detected_value: Optional[float] = None
    expected_min: Optional[float] = None
    expected_max: Optional[float] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class DetectionResult(BaseModel):
    """Per-facility result of the nightly data-quality job."""

    facilityId: str
    facilityName: str
    casesChecked: int = 0
    issuesFound: int = 0
    expiredCount: int = 0
    staleCasesDetected: int = 0
    staleCasesCreated: int = 0
    errors: List[str] = Field(default_factory=list)


class DetectionSummary(BaseModel):
    """Totals across all facilities for one job run."""

    facilitiesProcessed: int = 0
    totalCasesChecked: int = 0
    totalIssuesFound: int = 0
    totalIssuesExpired: int = 0
    totalStaleCasesDetected: int = 0
    totalStaleCasesCreated: int = 0


class ResolveIssueRequest(BaseModel):
    """Request body for resolving a single issue."""

    userId: str
    resolutionType: str = Field(..., description="resolution_types.name, e.g. 'approved'")
    notes: Optional[str] = None


class BulkResolveRequest(ResolveIssueRequest):
    """Request body for resolving several issues at once."""

    issueIds: List[str] = Field(..., min_length=1)


class DetectionJobResponse(BaseModel):
    """JSON summary returned by the nightly detection job."""

    success: bool
    summary: Optional[DetectionSummary] = None
    results: List[DetectionResult] = Field(default_factory=list)
    error: Optional[str] = None
    notification: Optional[Dict[str, Any]] = Field(
        default=None, description="Slack digest outcome when a digest was attempted"
    )
