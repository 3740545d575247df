"""
Tests for the insight engine.

Covers each generator's gating and narrative, the weekday pattern detector,
ranking/truncation, and the end-to-end generate_insights() output for a
facility missing most of its targets.

Fixtures (conftest.py):
- default_cfg: fully defaulted ResolvedInsightsConfig
- empty_analytics: overview with no data
- struggling_analytics: overview that triggers most generators
"""

from typing import List

import pytest

from orbit_analytics.models import (
    AnalyticsOverview,
    CancellationResult,
    DailyTrackerData,
    FCOTSResult,
    FlipRoomAnalysis,
    Insight,
    InsightCategory,
    InsightsConfig,
    InsightSeverity,
    KPIResult,
    NonOperativeTimeResult,
    ORUtilizationResult,
    RoomUtilizationDetail,
    SurgeonIdleSummary,
    TurnoverResult,
)
from orbit_analytics.services.financial_impact import resolve_insights_config
from orbit_analytics.services.insights_engine import (
    INSIGHT_GENERATORS,
    analyze_callback_optimization,
    analyze_cancellation_trends,
    analyze_first_case_delays,
    analyze_non_operative_time,
    analyze_scheduling_patterns,
    analyze_turnover_efficiency,
    analyze_utilization_gaps,
    find_worst_day_of_week,
    generate_insights,
    rank_insights,
)


def _ids(insights: List[Insight]) -> List[str]:
    return [i.id for i in insights]


def _day(date: str, color: str) -> DailyTrackerData:
    return DailyTrackerData(date=date, color=color)


def _surgeon(surgeon_id: str, **kwargs) -> SurgeonIdleSummary:
    return SurgeonIdleSummary(surgeonId=surgeon_id, surgeonName=f'Dr. {surgeon_id}', **kwargs)


# =============================================================================
# Weekday Pattern
# =============================================================================

class TestFindWorstDayOfWeek:
    """Weekday with a meaningfully lower green share."""

    def test_requires_five_entries(self) -> None:
        data = [_day('2025-03-03', 'red'), _day('2025-03-10', 'red'),
                _day('2025-03-04', 'green'), _day('2025-03-11', 'green')]

        assert find_worst_day_of_week(data) is None
        assert find_worst_day_of_week(None) is None

    def test_detects_weak_monday(self) -> None:
        # Arrange: 2025-03-03 and 2025-03-10 are Mondays
        data = [
            _day('2025-03-03', 'red'), _day('2025-03-10', 'red'),
            _day('2025-03-04', 'green'), _day('2025-03-11', 'green'),
            _day('2025-03-05', 'green'), _day('2025-03-12', 'green'),
        ]

        # Act
        worst = find_worst_day_of_week(data)

        # Assert
        assert worst is not None
        assert worst.name == 'Mondays'
        assert worst.rate == 0
        assert worst.count == 2

    def test_uniform_performance_is_noise(self) -> None:
        data = [_day(f'2025-03-{d:02d}', 'green') for d in range(3, 13)]

        assert find_worst_day_of_week(data) is None

    def test_single_observation_weekday_is_ineligible(self) -> None:
        # Thursday 2025-03-06 appears once and is red; every eligible day is green
        data = [
            _day('2025-03-03', 'green'), _day('2025-03-10', 'green'),
            _day('2025-03-04', 'green'), _day('2025-03-11', 'green'),
            _day('2025-03-06', 'red'),
        ]

        assert find_worst_day_of_week(data) is None

    def test_unparseable_dates_are_ignored(self) -> None:
        data = [_day('not-a-date', 'red')] * 6

        assert find_worst_day_of_week(data) is None


# =============================================================================
# First Case On-Time Starts
# =============================================================================

class TestFirstCaseDelays:
    """analyze_first_case_delays gating, extraction and impact."""

    def test_no_data_yields_nothing(self, empty_analytics, default_cfg) -> None:
        assert analyze_first_case_delays(empty_analytics, default_cfg) == []

    def test_on_target_is_positive(self, default_cfg) -> None:
        analytics = AnalyticsOverview(
            fcots=FCOTSResult(value=90, displayValue='90%', target=85, targetMet=True)
        )

        insights = analyze_first_case_delays(analytics, default_cfg)

        assert _ids(insights) == ['fcots-on-target']
        assert insights[0].severity == InsightSeverity.POSITIVE
        assert 'meeting the 85% target' in insights[0].body

    def test_delays_critical_with_impact(self, struggling_analytics, default_cfg) -> None:
        insights = analyze_first_case_delays(struggling_analytics, default_cfg)

        assert len(insights) == 1
        insight = insights[0]
        assert insight.id == 'fcots-delays'
        assert insight.severity == InsightSeverity.CRITICAL
        # 11/16 late * 12 min * 4 rooms = 33 min/day * $36 * 250 days
        assert insight.metadata['annualImpact'] == 297000
        assert insight.financialImpact == '~$297K/year estimated impact'
        assert insight.body.startswith('11 of 16 first cases started late')

    def test_warning_at_or_above_fifty(self, default_cfg) -> None:
        analytics = AnalyticsOverview(
            fcots=FCOTSResult(value=70, displayValue='70%', lateCount=3, totalFirstCases=10)
        )

        insights = analyze_first_case_delays(analytics, default_cfg)

        assert insights[0].severity == InsightSeverity.WARNING
        assert insights[0].metadata['target'] == 85

    def test_subtitle_fallback(self, default_cfg) -> None:
        analytics = AnalyticsOverview(
            fcots=FCOTSResult(value=60, displayValue='60%', subtitle='8 late of 20 first cases')
        )

        insight = analyze_first_case_delays(analytics, default_cfg)[0]

        assert insight.metadata['lateCount'] == 8
        assert insight.metadata['totalFirstCases'] == 20

    def test_structured_counts_beat_subtitle(self, default_cfg) -> None:
        analytics = AnalyticsOverview(
            fcots=FCOTSResult(
                value=60, displayValue='60%', lateCount=5, totalFirstCases=20,
                subtitle='8 late of 20 first cases',
            )
        )

        insight = analyze_first_case_delays(analytics, default_cfg)[0]

        assert insight.metadata['lateCount'] == 5

    def test_zero_late_cases_have_no_impact(self, default_cfg) -> None:
        analytics = AnalyticsOverview(fcots=FCOTSResult(value=60, displayValue='60%', subtitle=''))

        insight = analyze_first_case_delays(analytics, default_cfg)[0]

        assert insight.financialImpact is None
        assert insight.metadata['annualImpact'] == 0

    def test_mentions_weak_day_and_decline(self, default_cfg) -> None:
        analytics = AnalyticsOverview(
            fcots=FCOTSResult(
                value=60, displayValue='60%', lateCount=4, totalFirstCases=10,
                delta=5, deltaType='decrease',
                dailyData=[
                    _day('2025-03-03', 'red'), _day('2025-03-10', 'red'),
                    _day('2025-03-04', 'green'), _day('2025-03-11', 'green'),
                    _day('2025-03-05', 'green'), _day('2025-03-12', 'green'),
                ],
            )
        )

        insight = analyze_first_case_delays(analytics, default_cfg)[0]

        assert 'Mondays are the weakest day at 0% on-time.' in insight.body
        assert 'This is 5% worse than the previous period.' in insight.body
        assert insight.metadata['worstDay'] == 'Mondays'


# =============================================================================
# Turnover
# =============================================================================

class TestTurnoverEfficiency:
    """Room turnover and same-room vs flip-room comparison."""

    def test_room_turnover_above_target(self, struggling_analytics, default_cfg) -> None:
        insights = analyze_turnover_efficiency(struggling_analytics, default_cfg)
        room = next(i for i in insights if i.id == 'turnover-room')

        assert room.severity == InsightSeverity.CRITICAL
        assert room.metadata['excessPerTurnover'] == 12
        # 12 excess min * 10 turnovers/day * $36 * 250
        assert room.financialImpact == '~$1.1M/year recoverable'
        assert 'systemic process delays' in room.body

    def test_subtitle_fallback_for_threshold_and_compliance(self, default_cfg) -> None:
        analytics = AnalyticsOverview(
            completedCases=40,
            turnoverTime=TurnoverResult(value=28, displayValue='28 min', subtitle='65% under 25 min'),
        )

        room = analyze_turnover_efficiency(analytics, default_cfg)[0]

        assert room.metadata['target'] == 25
        assert room.metadata['complianceRate'] == 65
        assert room.severity == InsightSeverity.WARNING
        assert 'Tightening handoff communication' in room.body

    def test_comparison_picks_larger_excess(self, struggling_analytics, default_cfg) -> None:
        insights = analyze_turnover_efficiency(struggling_analytics, default_cfg)
        comparison = next(i for i in insights if i.id == 'turnover-surgical-comparison')

        assert comparison.severity == InsightSeverity.INFO
        assert comparison.metadata['biggerProblem'] == 'same-room'
        assert comparison.metadata['totalExcessMinutes'] == 500

    def test_comparison_needs_both_samples(self, default_cfg) -> None:
        analytics = AnalyticsOverview(
            turnoverTime=TurnoverResult(targetMet=True),
            standardSurgicalTurnover=TurnoverResult(value=50, count=10),
            flipRoomTime=TurnoverResult(value=20, count=0),
        )

        assert analyze_turnover_efficiency(analytics, default_cfg) == []


# =============================================================================
# Callback Optimization
# =============================================================================

class TestCallbackOptimization:
    """Surgeon callback timing insights."""

    @pytest.fixture
    def surgeons(self) -> List[SurgeonIdleSummary]:
        return [
            _surgeon('A', hasFlipData=True, status='call_sooner',
                     medianCallbackDelta=10, flipGapCount=8, medianFlipIdle=18),
            _surgeon('B', hasFlipData=True, status='call_sooner',
                     medianCallbackDelta=4, flipGapCount=5, medianFlipIdle=12),
            _surgeon('C', hasFlipData=True, status='on_track', medianFlipIdle=3),
        ]

    def test_call_sooner_names_benchmark_and_worst(self, surgeons, default_cfg) -> None:
        analytics = AnalyticsOverview(surgeonIdleSummaries=surgeons)

        insight = analyze_callback_optimization(analytics, default_cfg)[0]

        assert insight.id == 'callback-call-sooner'
        assert insight.severity == InsightSeverity.WARNING
        assert insight.metadata['totalRecoverableMinutes'] == 100
        assert insight.metadata['bestSurgeon'] == 'Dr. C'
        assert insight.metadata['worstSurgeon'] == 'Dr. A'
        # 100 min over 1 day * 250 days * $36
        assert insight.financialImpact == '~$900K/year if optimized'
        assert "Dr. C's 3 min flip idle is the facility benchmark" in insight.body

    def test_selection_independent_of_order(self, surgeons, default_cfg) -> None:
        forward = analyze_callback_optimization(AnalyticsOverview(surgeonIdleSummaries=surgeons), default_cfg)
        backward = analyze_callback_optimization(
            AnalyticsOverview(surgeonIdleSummaries=list(reversed(surgeons))), default_cfg
        )

        assert forward[0].metadata == backward[0].metadata

    def test_period_days_from_flip_analysis_dates(self, surgeons, default_cfg) -> None:
        analytics = AnalyticsOverview(
            surgeonIdleSummaries=surgeons,
            flipRoomAnalysis=[
                FlipRoomAnalysis(surgeonId='A', surgeonName='Dr. A', date='2025-03-03'),
                FlipRoomAnalysis(surgeonId='B', surgeonName='Dr. B', date='2025-03-03'),
                FlipRoomAnalysis(surgeonId='A', surgeonName='Dr. A', date='2025-03-04'),
            ],
        )

        insight = analyze_callback_optimization(analytics, default_cfg)[0]

        # 100 min / 2 days * 250 * $36
        assert insight.metadata['annualImpact'] == 450000

    def test_all_on_track_is_positive(self, default_cfg) -> None:
        analytics = AnalyticsOverview(surgeonIdleSummaries=[
            _surgeon('A', hasFlipData=True, status='on_track'),
            _surgeon('B', hasFlipData=True, status='on_track'),
        ])

        insights = analyze_callback_optimization(analytics, default_cfg)

        assert _ids(insights) == ['callback-all-on-track']
        assert 'All 2 flip room surgeons have well-timed callbacks' in insights[0].body

    def test_call_later_and_same_room_idle(self, default_cfg) -> None:
        analytics = AnalyticsOverview(surgeonIdleSummaries=[
            _surgeon('A', hasFlipData=True, status='call_later'),
            _surgeon('B', hasFlipData=False, medianSameRoomIdle=35),
            _surgeon('C', hasFlipData=False, medianSameRoomIdle=50),
        ])

        insights = analyze_callback_optimization(analytics, default_cfg)

        assert _ids(insights) == ['callback-call-later', 'callback-same-room-high']
        assert insights[0].body.startswith('1 surgeon is arriving')
        same_room = insights[1]
        assert same_room.severity == InsightSeverity.WARNING
        assert 'Dr. C averages 50 min' in same_room.body

    def test_no_summaries(self, empty_analytics, default_cfg) -> None:
        assert analyze_callback_optimization(empty_analytics, default_cfg) == []


# =============================================================================
# Utilization
# =============================================================================

class TestUtilizationGaps:
    """OR utilization against target."""

    def test_below_target(self, struggling_analytics, default_cfg) -> None:
        insight = analyze_utilization_gaps(struggling_analytics, default_cfg)[0]

        assert insight.id == 'utilization-below-target'
        assert insight.severity == InsightSeverity.CRITICAL
        assert insight.metadata['unusedHours'] == 104
        assert insight.metadata['worstRoom'] == 'OR 1'
        assert insight.financialImpact == '~$5.6M/year in unused capacity'
        assert '1 room is using default 10h availability' in insight.body

    def test_on_target(self, default_cfg) -> None:
        analytics = AnalyticsOverview(orUtilization=ORUtilizationResult(
            value=80, displayValue='80%', target=75, targetMet=True,
            roomBreakdown=[
                RoomUtilizationDetail(roomId='r1', roomName='OR 1', utilization=85),
                RoomUtilizationDetail(roomId='r2', roomName='OR 2', utilization=70),
            ],
        ))

        insights = analyze_utilization_gaps(analytics, default_cfg)

        assert _ids(insights) == ['utilization-on-target']
        assert '1 rooms are individually above target' in insights[0].body

    def test_no_rooms(self, empty_analytics, default_cfg) -> None:
        assert analyze_utilization_gaps(empty_analytics, default_cfg) == []


# =============================================================================
# Cancellations
# =============================================================================

class TestCancellationTrends:
    """Same-day cancellation streak and rate."""

    def test_trailing_streak(self, default_cfg) -> None:
        # Two bad days early, then 7 clean days
        data = [_day('2025-03-01', 'red'), _day('2025-03-02', 'red')] + [
            _day(f'2025-03-{d:02d}', 'green') for d in range(3, 10)
        ]
        analytics = AnalyticsOverview(cancellationRate=CancellationResult(dailyData=data))

        insight = analyze_cancellation_trends(analytics, default_cfg)[0]

        assert insight.id == 'cancellation-streak'
        assert insight.metadata['streak'] == 7
        assert 'exceptional streak' not in insight.body
        assert '$6K' in insight.body

    def test_short_streak_is_silent(self, default_cfg) -> None:
        data = [_day(f'2025-03-{d:02d}', 'green') for d in range(1, 6)]
        analytics = AnalyticsOverview(cancellationRate=CancellationResult(dailyData=data))

        assert analyze_cancellation_trends(analytics, default_cfg) == []

    def test_rate_with_projection(self, struggling_analytics, default_cfg) -> None:
        insight = analyze_cancellation_trends(struggling_analytics, default_cfg)[0]

        assert insight.id == 'cancellation-rate'
        assert insight.severity == InsightSeverity.INFO
        assert insight.metadata['annualProjected'] == 200
        assert insight.financialImpact == '~$1.2M/year at risk'
        assert 'Above the <5% target' in insight.body

    def test_rate_above_target_warns(self, default_cfg) -> None:
        analytics = AnalyticsOverview(
            totalCases=10,
            cancellationRate=CancellationResult(displayValue='10%', sameDayCount=1, sameDayRate=10),
        )

        insight = analyze_cancellation_trends(analytics, default_cfg)[0]

        assert insight.severity == InsightSeverity.WARNING
        assert insight.body.startswith('1 same-day cancellation this period')


# =============================================================================
# Non-Operative Time
# =============================================================================

class TestNonOperativeTime:
    """Non-op share and pre-op ratio."""

    def test_high_non_op_time(self, struggling_analytics, default_cfg) -> None:
        insights = analyze_non_operative_time(struggling_analytics, default_cfg)

        assert _ids(insights) == ['non-op-time-high']
        insight = insights[0]
        assert insight.severity == InsightSeverity.WARNING
        assert insight.metadata['dominant'] == 'pre-op'
        assert insight.metadata['savedMinutesPerCase'] == 6
        assert insight.financialImpact == '~$972K/year if pre-op reduced 20%'

    def test_preop_ratio_only(self, default_cfg) -> None:
        analytics = AnalyticsOverview(
            completedCases=20,
            nonOperativeTime=NonOperativeTimeResult(value=25, subtitle='20% of case time'),
            avgPreOpTime=30,
            avgSurgicalTime=40,
        )

        insights = analyze_non_operative_time(analytics, default_cfg)

        assert _ids(insights) == ['preop-ratio-high']
        assert insights[0].metadata['ratio'] == 75

    def test_no_completed_cases(self, default_cfg) -> None:
        analytics = AnalyticsOverview(nonOperativeTime=NonOperativeTimeResult(value=40, percentOfCaseTime=50))

        assert analyze_non_operative_time(analytics, default_cfg) == []


# =============================================================================
# Scheduling
# =============================================================================

class TestSchedulingPatterns:
    """Volume/utilization divergence and volume decline."""

    def test_divergence(self, default_cfg) -> None:
        analytics = AnalyticsOverview(
            caseVolume=KPIResult(value=120, delta=12, deltaType='increase'),
            orUtilization=ORUtilizationResult(delta=5, deltaType='decrease'),
        )

        insights = analyze_scheduling_patterns(analytics, default_cfg)

        assert _ids(insights) == ['scheduling-divergence']
        assert 'increased 12% while OR utilization dropped 5%' in insights[0].body

    def test_volume_decline(self, struggling_analytics, default_cfg) -> None:
        insight = analyze_scheduling_patterns(struggling_analytics, default_cfg)[0]

        assert insight.id == 'volume-declining'
        assert insight.severity == InsightSeverity.CRITICAL
        assert insight.financialImpact == '~$348K revenue impact'

    def test_moderate_decline_is_silent(self, default_cfg) -> None:
        analytics = AnalyticsOverview(caseVolume=KPIResult(value=100, delta=15, deltaType='decrease'))

        assert analyze_scheduling_patterns(analytics, default_cfg) == []


# =============================================================================
# Ranking and End to End
# =============================================================================

class TestRankingAndGeneration:
    """Severity filter, ordering and truncation."""

    def _insight(self, insight_id: str, severity: InsightSeverity, impact: str = None) -> Insight:
        return Insight(
            id=insight_id, category=InsightCategory.SCHEDULING_PATTERN, severity=severity,
            title=insight_id, body='', action='', financialImpact=impact,
        )

    def test_orders_by_severity_then_impact(self, default_cfg) -> None:
        insights = [
            self._insight('info', InsightSeverity.INFO, '~$2M/year'),
            self._insight('warn-small', InsightSeverity.WARNING, '~$20K/year'),
            self._insight('crit', InsightSeverity.CRITICAL),
            self._insight('warn-big', InsightSeverity.WARNING, '~$1.5M/year'),
            self._insight('pos', InsightSeverity.POSITIVE),
        ]

        ranked = rank_insights(insights, default_cfg)

        assert _ids(ranked) == ['crit', 'warn-big', 'warn-small', 'pos', 'info']

    def test_min_severity_and_cap(self) -> None:
        cfg = resolve_insights_config(InsightsConfig(minSeverityToShow='warning', maxInsights=1))
        insights = [
            self._insight('info', InsightSeverity.INFO),
            self._insight('warn', InsightSeverity.WARNING),
            self._insight('crit', InsightSeverity.CRITICAL),
        ]

        assert _ids(rank_insights(insights, cfg)) == ['crit']

    def test_zero_max_insights(self, struggling_analytics) -> None:
        assert generate_insights(struggling_analytics, InsightsConfig(maxInsights=0)) == []

    def test_empty_overview_yields_nothing(self, empty_analytics) -> None:
        assert generate_insights(empty_analytics) == []

    def test_struggling_facility(self, struggling_analytics) -> None:
        insights = generate_insights(struggling_analytics)

        assert _ids(insights) == [
            'utilization-below-target',
            'turnover-room',
            'volume-declining',
            'fcots-delays',
            'non-op-time-high',
            'cancellation-rate',
        ]

    def test_ids_unique_per_call(self, struggling_analytics, default_cfg) -> None:
        ids = [i.id for g in INSIGHT_GENERATORS for i in g(struggling_analytics, default_cfg)]

        assert len(ids) == len(set(ids))

    def test_hourly_rate_scales_impact(self, struggling_analytics) -> None:
        base = generate_insights(struggling_analytics)
        doubled = generate_insights(struggling_analytics, InsightsConfig(orHourlyRate=4320))

        fcots_base = next(i for i in base if i.id == 'fcots-delays')
        fcots_doubled = next(i for i in doubled if i.id == 'fcots-delays')
        assert fcots_doubled.metadata['annualImpact'] == 2 * fcots_base.metadata['annualImpact']
