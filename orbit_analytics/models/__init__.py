"""
Package initialization file for backend models.

Re-exports the enums and Pydantic schemas so other modules can write:

    from orbit_analytics.models import AnalyticsOverview, Insight, InsightSeverity
"""

# =============================================================================
# Enums
# =============================================================================

from orbit_analytics.models.enums import (
    SEVERITY_ORDER,
    EXPIRED_RESOLUTION,
    InsightSeverity,
    InsightCategory,
    DrillThroughType,
    DeltaType,
    TrackerColor,
    SurgeonCallbackStatus,
    IssueSeverity,
    StaleIssueType,
    MilestoneIssueType,
    CaseStatus,
)

# =============================================================================
# Schemas
# =============================================================================

from orbit_analytics.models.schemas import (
    # Metric aggregates
    DailyTrackerData,
    KPIResult,
    FCOTSResult,
    TurnoverResult,
    NonOperativeTimeResult,
    CancellationResult,
    RoomUtilizationDetail,
    ORUtilizationResult,
    IdleGap,
    FlipRoomAnalysis,
    SurgeonIdleSummary,
    AnalyticsOverview,
    # Insights
    Insight,
    InsightsConfig,
    ResolvedInsightsConfig,
    InsightsRequest,
    InsightsResponse,
    # Data quality
    IssueType,
    ResolutionType,
    MetricIssue,
    DataQualitySummary,
    StaleCase,
    StaleDetectionResult,
    CaseSnapshot,
    MilestoneIssue,
    DetectionResult,
    DetectionSummary,
    DetectionJobResponse,
    ResolveIssueRequest,
    BulkResolveRequest,
)

__all__ = [
    'SEVERITY_ORDER',
    'EXPIRED_RESOLUTION',
    'InsightSeverity',
    'InsightCategory',
    'DrillThroughType',
    'DeltaType',
    'TrackerColor',
    'SurgeonCallbackStatus',
    'IssueSeverity',
    'StaleIssueType',
    'MilestoneIssueType',
    'CaseStatus',
    'DailyTrackerData',
    'KPIResult',
    'FCOTSResult',
    'TurnoverResult',
    'NonOperativeTimeResult',
    'CancellationResult',
    'RoomUtilizationDetail',
    'ORUtilizationResult',
    'IdleGap',
    'FlipRoomAnalysis',
    'SurgeonIdleSummary',
    'AnalyticsOverview',
    'Insight',
    'InsightsConfig',
    'ResolvedInsightsConfig',
    'InsightsRequest',
    'InsightsResponse',
    'IssueType',
    'ResolutionType',
    'MetricIssue',
    'DataQualitySummary',
    'StaleCase',
    'StaleDetectionResult',
    'CaseSnapshot',
    'MilestoneIssue',
    'DetectionResult',
    'DetectionSummary',
    'DetectionJobResponse',
    'ResolveIssueRequest',
    'BulkResolveRequest',
]
