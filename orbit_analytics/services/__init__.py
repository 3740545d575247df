"""
Backend Services Module

Business logic for the ORbit analytics backend. Services are stateless; the
ones that touch the database take an asyncpg connection from the caller.

Services:
- financial_impact: Revenue assumptions, annualization and dollar formatting
- insights_engine: Rule-based insight generation and ranking
- data_quality: metric_issues lifecycle and milestone validation rules
- stale_case_detection: Orphaned-workflow (stale case) detection

All services are consumed by the API layer (orbit_analytics/api/) and the
nightly job (orbit_analytics/jobs/).
"""

# =============================================================================
# Financial Impact Exports
# =============================================================================

from orbit_analytics.services.financial_impact import (
    resolve_insights_config,
    annualize_minutes,
    format_compact_number,
    format_number,
    parse_financial_value,
    round_half_up,
)

# =============================================================================
# Insights Engine Exports
# Seven independent generators over one AnalyticsOverview, ranked by
# severity then financial impact and capped at maxInsights
# =============================================================================

from orbit_analytics.services.insights_engine import (
    generate_insights,
    generate_all_insights,
    rank_insights,
    find_worst_day_of_week,
    analyze_first_case_delays,
    analyze_turnover_efficiency,
    analyze_callback_optimization,
    analyze_utilization_gaps,
    analyze_cancellation_trends,
    analyze_non_operative_time,
    analyze_scheduling_patterns,
    INSIGHT_GENERATORS,
)

# =============================================================================
# Data Quality Exports
# =============================================================================

from orbit_analytics.services.data_quality import (
    fetch_issue_types,
    fetch_resolution_types,
    fetch_metric_issues,
    calculate_data_quality_summary,
    summarize_issues,
    resolve_issue,
    resolve_multiple_issues,
    reopen_issue,
    expire_old_issues,
    get_days_until_expiration,
    format_detected_value,
    create_issue_if_not_exists,
    check_missing_milestones,
    check_negative_durations,
    check_impossible_values,
    evaluate_case_milestones,
    build_case_snapshots,
    run_detection_for_facility,
)

# =============================================================================
# Stale Case Detection Exports
# =============================================================================

from orbit_analytics.services.stale_case_detection import (
    StaleThresholds,
    evaluate_stale_in_progress,
    evaluate_abandoned_scheduled,
    evaluate_no_activity,
    detect_stale_cases,
    detect_stale_cases_all_facilities,
)

__all__ = [
    # Financial impact
    'resolve_insights_config',
    'annualize_minutes',
    'format_compact_number',
    'format_number',
    'parse_financial_value',
    'round_half_up',
    # Insights engine
    'generate_insights',
    'generate_all_insights',
    'rank_insights',
    'find_worst_day_of_week',
    'analyze_first_case_delays',
    'analyze_turnover_efficiency',
    'analyze_callback_optimization',
    'analyze_utilization_gaps',
    'analyze_cancellation_trends',
    'analyze_non_operative_time',
    'analyze_scheduling_patterns',
    'INSIGHT_GENERATORS',
    # Data quality
    'fetch_issue_types',
    'fetch_resolution_types',
    'fetch_metric_issues',
    'calculate_data_quality_summary',
    'summarize_issues',
    'resolve_issue',
    'resolve_multiple_issues',
    'reopen_issue',
    'expire_old_issues',
    'get_days_until_expiration',
    'format_detected_value',
    'create_issue_if_not_exists',
    'check_missing_milestones',
    'check_negative_durations',
    'check_impossible_values',
    'evaluate_case_milestones',
    'build_case_snapshots',
    'run_detection_for_facility',
    # Stale case detection
    'StaleThresholds',
    'evaluate_stale_in_progress',
    'evaluate_abandoned_scheduled',
    'evaluate_no_activity',
    'detect_stale_cases',
    'detect_stale_cases_all_facilities',
]
