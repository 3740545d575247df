"""
Insight engine: synthesizes ranked, actionable insights from an AnalyticsOverview.

No database access happens here. Everything is derived from the pre-computed
aggregates handed in by the analytics layer, so every function is pure,
deterministic and safe to call concurrently.

Key Features:
- Seven independent generators, one per metric dimension
- Financial impact translation (OR minutes -> annual dollars)
- Day-of-week pattern detection on daily tracker data
- Severity filtering, severity/impact ranking and truncation

Each generator returns zero or more Insight records and must never raise for
well-formed input. Degenerate input (zero totals, empty lists, missing
numbers) yields an empty list, a positive insight, or a zero-valued estimate.

Usage:
    from orbit_analytics.services.insights_engine import generate_insights

    insights = generate_insights(analytics, InsightsConfig(orHourlyRate=2400))
    for insight in insights:
        print(insight.severity.value, insight.title, insight.financialImpact)

See Also:
    - orbit_analytics/services/financial_impact.py: Rate resolution and formatting
    - orbit_analytics/models/schemas.py: AnalyticsOverview and Insight contracts
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional

import pandas as pd

from orbit_analytics.models import (
    SEVERITY_ORDER,
    AnalyticsOverview,
    DailyTrackerData,
    DeltaType,
    DrillThroughType,
    Insight,
    InsightCategory,
    InsightsConfig,
    InsightSeverity,
    ResolvedInsightsConfig,
    SurgeonCallbackStatus,
    TrackerColor,
)
from orbit_analytics.services.financial_impact import (
    annualize_minutes,
    format_compact_number,
    format_number,
    parse_financial_value,
    resolve_insights_config,
    round_half_up,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

DEFAULT_FCOTS_TARGET = 85
DEFAULT_TURNOVER_THRESHOLD_MINUTES = 30
DEFAULT_SAME_ROOM_TARGET = 45
DEFAULT_FLIP_ROOM_TARGET = 15
DEFAULT_UTILIZATION_TARGET = 75
DEFAULT_CANCELLATION_TARGET = 5

# Assumed average delay per late first case, across ~4 rooms starting each day
ESTIMATED_FIRST_CASE_DELAY_MINUTES = 12
ESTIMATED_FIRST_CASE_ROOMS = 4

# Fallback cadence when the period length is not supplied
CASES_PER_DAY_ESTIMATE = 20

NON_OP_REDUCTION_TARGET = 0.2

DAY_NAMES = ['Sundays', 'Mondays', 'Tuesdays', 'Wednesdays', 'Thursdays', 'Fridays', 'Saturdays']

_LATE_PATTERN = re.compile(r"(\d+)\s+late\s+of\s+(\d+)")
_THRESHOLD_PATTERN = re.compile(r"under\s+(\d+)\s+min")
_PERCENT_PATTERN = re.compile(r"(\d+)%")
_TURNOVER_COUNT_PATTERN = re.compile(r"(\d+)\s+turnovers")
_FLIP_COUNT_PATTERN = re.compile(r"(\d+)\s+flips")


@dataclass
class WorstDay:
    """Weekday with a meaningfully lower on-time rate than the rest."""
    name: str
    rate: int
    count: int


# =============================================================================
# Helpers
# =============================================================================

def _match_int(pattern: re.Pattern, text: Optional[str], group: int = 1) -> Optional[int]:
    """First integer captured by `pattern` in `text`, or None."""
    if not text:
        return None
    match = pattern.search(text)
    return int(match.group(group)) if match else None


def _target_or(target: Optional[float], default: float) -> float:
    return target if target is not None else default


def _period_days(analytics: AnalyticsOverview) -> float:
    """Operating days covered by the overview, at least 1."""
    if analytics.periodLengthDays:
        return float(analytics.periodLengthDays)
    return max(analytics.completedCases / CASES_PER_DAY_ESTIMATE, 1)


def _plural(count: int, singular: str, plural: str) -> str:
    return singular if count == 1 else plural


def find_worst_day_of_week(daily_data: Optional[List[DailyTrackerData]]) -> Optional[WorstDay]:
    """
    Find the weekday with the lowest share of 'green' days.

    Needs at least 5 entries overall and at least 2 for a weekday to be
    eligible. The worst eligible weekday is returned only when its rate is at
    least 10 points below the mean rate across all weekdays with data; ties
    keep the weekday that appears first in the data.

    Args:
        daily_data: Daily tracker entries with YYYY-MM-DD dates.

    Returns:
        WorstDay (plural day name, rounded rate, observation count) or None.
    """
    if not daily_data or len(daily_data) < 5:
        return None

    frame = pd.DataFrame({
        'date': pd.to_datetime([d.date for d in daily_data], errors='coerce', format='ISO8601'),
        'good': [d.color == TrackerColor.GREEN.value for d in daily_data],
    })
    frame = frame[frame['date'].notna()]
    if frame.empty:
        return None

    # pandas counts Monday as 0; shift so Sunday is 0
    frame['weekday'] = ((frame['date'].dt.dayofweek + 1) % 7).astype(int)
    stats = frame.groupby('weekday', sort=False).agg(good=('good', 'sum'), total=('good', 'size'))

    worst: Optional[WorstDay] = None
    for weekday, row in stats.iterrows():
        total = int(row['total'])
        if total < 2:
            continue
        rate = round_half_up(int(row['good']) / total * 100)
        if worst is None or rate < worst.rate:
            worst = WorstDay(name=DAY_NAMES[int(weekday)], rate=rate, count=total)

    if worst is None:
        return None

    avg_rate = float((stats['good'] / stats['total']).mean()) * 100
    if worst.rate >= avg_rate - 10:
        return None

    return worst


# =============================================================================
# Insight Generators
# =============================================================================

def analyze_first_case_delays(
    analytics: AnalyticsOverview,
    cfg: ResolvedInsightsConfig
) -> List[Insight]:
    """
    First case on-time starts: late count, weekday pattern and revenue impact.

    Emits 'fcots-on-target' (positive) when the target is met, or
    'fcots-delays' (critical below 50%, otherwise warning) when it is missed.
    A zero rate means no data and yields nothing.
    """
    fcots = analytics.fcots
    target = _target_or(fcots.target, DEFAULT_FCOTS_TARGET)

    if fcots.targetMet or fcots.value == 0:
        if fcots.value > 0 and fcots.value >= target:
            return [Insight(
                id='fcots-on-target',
                category=InsightCategory.FIRST_CASE_DELAYS,
                severity=InsightSeverity.POSITIVE,
                title='First Cases Starting On Time',
                body=(
                    f"{fcots.displayValue} of first cases started within the grace period — "
                    f"meeting the {format_number(target)}% target. Consistent on-time starts "
                    f"protect downstream scheduling for the entire day."
                ),
                action='View FCOTS details →',
                actionRoute='/analytics/fcots',
                drillThroughType=None,
                metadata={'rate': fcots.value, 'target': target},
            )]
        return []

    late_count = fcots.lateCount
    total_first_cases = fcots.totalFirstCases
    if late_count is None or total_first_cases is None:
        late_count = _match_int(_LATE_PATTERN, fcots.subtitle, 1) or 0
        total_first_cases = _match_int(_LATE_PATTERN, fcots.subtitle, 2) or 0

    worst_day = find_worst_day_of_week(fcots.dailyData)

    daily_delay_minutes = 0.0
    if late_count > 0 and total_first_cases > 0:
        daily_delay_minutes = (
            (late_count / total_first_cases)
            * ESTIMATED_FIRST_CASE_DELAY_MINUTES
            * ESTIMATED_FIRST_CASE_ROOMS
        )
    annual_impact = annualize_minutes(daily_delay_minutes, cfg)

    body = (
        f"{late_count} of {total_first_cases} first cases started late this period — "
        f"a {fcots.displayValue} on-time rate against a {format_number(target)}% target."
    )
    if worst_day:
        body += f" {worst_day.name} are the weakest day at {worst_day.rate}% on-time."
    if fcots.delta and fcots.deltaType == DeltaType.DECREASE:
        body += f" This is {format_number(fcots.delta)}% worse than the previous period."

    return [Insight(
        id='fcots-delays',
        category=InsightCategory.FIRST_CASE_DELAYS,
        severity=InsightSeverity.CRITICAL if fcots.value < 50 else InsightSeverity.WARNING,
        title='First Case On-Time Below Target',
        body=body,
        action='View delay breakdown →',
        actionRoute='/analytics/fcots',
        financialImpact=(
            f"~${format_compact_number(annual_impact)}/year estimated impact"
            if annual_impact > 0 else None
        ),
        drillThroughType=DrillThroughType.FCOTS,
        metadata={
            'rate': fcots.value,
            'target': target,
            'lateCount': late_count,
            'totalFirstCases': total_first_cases,
            'worstDay': worst_day.name if worst_day else None,
            'annualImpact': annual_impact,
        },
    )]


def analyze_turnover_efficiency(
    analytics: AnalyticsOverview,
    cfg: ResolvedInsightsConfig
) -> List[Insight]:
    """
    Room turnover versus its minute threshold, plus a same-room vs flip-room comparison.

    Emits up to two insights: 'turnover-room' when the compliance target is
    missed, and 'turnover-surgical-comparison' (always info) when both
    pathways exceed their targets and both have samples.
    """
    insights: List[Insight] = []
    turnover = analytics.turnoverTime
    same_room = analytics.standardSurgicalTurnover
    flip_room = analytics.flipRoomTime

    same_room_target = _target_or(same_room.target, DEFAULT_SAME_ROOM_TARGET)
    flip_room_target = _target_or(flip_room.target, DEFAULT_FLIP_ROOM_TARGET)
    same_room_gap = same_room.value - same_room_target
    flip_room_gap = flip_room.value - flip_room_target

    same_room_count = same_room.count
    if same_room_count is None:
        same_room_count = _match_int(_TURNOVER_COUNT_PATTERN, same_room.subtitle) or 0
    flip_count = flip_room.count
    if flip_count is None:
        flip_count = _match_int(_FLIP_COUNT_PATTERN, flip_room.subtitle) or 0

    # turnoverTime.target is the compliance percentage, not the minute threshold
    if not turnover.targetMet and turnover.value > 0:
        target_minutes = turnover.thresholdMinutes
        if target_minutes is None:
            target_minutes = _match_int(_THRESHOLD_PATTERN, turnover.subtitle) or DEFAULT_TURNOVER_THRESHOLD_MINUTES
        compliance_rate = turnover.complianceRate
        if compliance_rate is None:
            compliance_rate = _match_int(_PERCENT_PATTERN, turnover.subtitle) or 0

        excess_per_turnover = max(0, turnover.value - target_minutes)
        turnovers_per_day = round_half_up((same_room_count + flip_count) / _period_days(analytics))
        annual_impact = annualize_minutes(excess_per_turnover * turnovers_per_day, cfg)

        if excess_per_turnover > 10:
            closing = 'This suggests systemic process delays beyond normal room cleaning.'
        else:
            closing = 'Tightening handoff communication between teams could close the remaining gap.'

        insights.append(Insight(
            id='turnover-room',
            category=InsightCategory.TURNOVER_EFFICIENCY,
            severity=InsightSeverity.CRITICAL if compliance_rate < 50 else InsightSeverity.WARNING,
            title='Room Turnover Above Target',
            body=(
                f"Median room turnover is {turnover.displayValue} against a "
                f"{format_number(target_minutes)} min target, with only "
                f"{format_number(compliance_rate)}% of turnovers meeting the goal. {closing}"
            ),
            action='View turnover trends →',
            actionRoute='/analytics/turnover',
            financialImpact=(
                f"~${format_compact_number(annual_impact)}/year recoverable"
                if annual_impact > 10000 else None
            ),
            drillThroughType=DrillThroughType.TURNOVER,
            metadata={
                'median': turnover.value,
                'target': target_minutes,
                'complianceRate': compliance_rate,
                'excessPerTurnover': excess_per_turnover,
            },
        ))

    if same_room_gap > 0 and flip_room_gap > 0 and same_room_count > 0 and flip_count > 0:
        same_room_excess = same_room_gap * same_room_count
        flip_room_excess = flip_room_gap * flip_count
        bigger_problem = 'same-room' if same_room_excess > flip_room_excess else 'flip-room'

        insights.append(Insight(
            id='turnover-surgical-comparison',
            category=InsightCategory.TURNOVER_EFFICIENCY,
            severity=InsightSeverity.INFO,
            title='Surgical Turnover Breakdown',
            body=(
                f"Same-room surgical turnover is {same_room.displayValue} "
                f"(target ≤{format_number(same_room_target)} min, {same_room_count} transitions) "
                f"while flip-room is {flip_room.displayValue} "
                f"(target ≤{format_number(flip_room_target)} min, {flip_count} flips). "
                f"The {bigger_problem} pathway accounts for more total excess minutes — "
                f"focus process improvements there first."
            ),
            action='Compare turnover types →',
            actionRoute='/analytics/turnover',
            drillThroughType=DrillThroughType.TURNOVER,
            metadata={
                'sameRoomGap': same_room_gap,
                'flipRoomGap': flip_room_gap,
                'biggerProblem': bigger_problem,
                'totalExcessMinutes': same_room_excess + flip_room_excess,
            },
        ))

    return insights


def analyze_callback_optimization(
    analytics: AnalyticsOverview,
    cfg: ResolvedInsightsConfig
) -> List[Insight]:
    """
    Surgeon callback timing for flip rooms and idle time in same rooms.

    The benchmark surgeon (lowest flip idle) and the worst call-sooner surgeon
    (largest callback delta) are selected here, so callers need not pre-sort.
    """
    insights: List[Insight] = []
    summaries = analytics.surgeonIdleSummaries

    if not summaries:
        return insights

    flip_surgeons = [s for s in summaries if s.hasFlipData]
    call_sooner = [s for s in flip_surgeons if s.status == SurgeonCallbackStatus.CALL_SOONER]
    on_track = [s for s in flip_surgeons if s.status == SurgeonCallbackStatus.ON_TRACK]
    call_later = [s for s in flip_surgeons if s.status == SurgeonCallbackStatus.CALL_LATER]

    best = min(flip_surgeons, key=lambda s: s.medianFlipIdle) if flip_surgeons else None

    if call_sooner:
        total_recoverable = sum(s.medianCallbackDelta * s.flipGapCount for s in call_sooner)

        period_days = max(len({a.date for a in analytics.flipRoomAnalysis}), 1)
        annual_recoverable = round_half_up(total_recoverable / period_days * cfg.operatingDaysPerYear)
        annual_impact = annual_recoverable * cfg.revenuePerORMinute

        worst = max(call_sooner, key=lambda s: s.medianCallbackDelta)

        count = len(call_sooner)
        body = (
            f"{count} surgeon{'' if count == 1 else 's'} with flip rooms could benefit from "
            f"earlier patient callbacks — {round_half_up(total_recoverable)} total idle minutes "
            f"identified this period."
        )
        if best and best.surgeonId != worst.surgeonId:
            body += (
                f" {best.surgeonName}'s {round_half_up(best.medianFlipIdle)} min flip idle is the "
                f"facility benchmark. Applying similar timing to {worst.surgeonName} (currently "
                f"{round_half_up(worst.medianFlipIdle)} min) could save "
                f"~{round_half_up(worst.medianCallbackDelta)} min per transition."
            )

        insights.append(Insight(
            id='callback-call-sooner',
            category=InsightCategory.CALLBACK_OPTIMIZATION,
            severity=InsightSeverity.WARNING if total_recoverable > 60 else InsightSeverity.INFO,
            title='Callback Timing Opportunity',
            body=body,
            action='View surgeon callback details →',
            actionRoute='/analytics/callback',
            financialImpact=(
                f"~${format_compact_number(annual_impact)}/year if optimized"
                if annual_impact > 5000 else None
            ),
            drillThroughType=DrillThroughType.CALLBACK,
            metadata={
                'callSoonerCount': count,
                'totalRecoverableMinutes': total_recoverable,
                'bestSurgeon': best.surgeonName if best else None,
                'bestFlipIdle': best.medianFlipIdle if best else None,
                'worstSurgeon': worst.surgeonName,
                'worstFlipIdle': worst.medianFlipIdle,
                'annualImpact': annual_impact,
            },
        ))

    if call_later:
        count = len(call_later)
        insights.append(Insight(
            id='callback-call-later',
            category=InsightCategory.CALLBACK_OPTIMIZATION,
            severity=InsightSeverity.INFO,
            title='Surgeons Arriving Too Early',
            body=(
                f"{count} surgeon{_plural(count, ' is', 's are')} arriving before flip rooms are "
                f"ready (median idle ≤2 min suggests overlap with room prep). Consider delaying "
                f"callbacks by 3-5 minutes to avoid surgeon waiting in hallways — this doesn't "
                f"impact schedule but improves surgeon satisfaction."
            ),
            action='View affected surgeons →',
            actionRoute='/analytics/callback',
            drillThroughType=DrillThroughType.CALLBACK,
            metadata={'callLaterSurgeons': [s.surgeonName for s in call_later]},
        ))

    if flip_surgeons and not call_sooner and not call_later:
        count = len(on_track)
        insights.append(Insight(
            id='callback-all-on-track',
            category=InsightCategory.CALLBACK_OPTIMIZATION,
            severity=InsightSeverity.POSITIVE,
            title='Callback Timing Well-Optimized',
            body=(
                f"All {count} flip room surgeon{_plural(count, ' has', 's have')} well-timed "
                f"callbacks with median idle ≤5 min. This means patients are arriving in flip "
                f"rooms close to when surgeons are ready — minimal wasted OR time."
            ),
            action='View callback performance →',
            actionRoute='/analytics/callback',
            drillThroughType=None,
            metadata={'onTrackCount': count},
        ))

    high_same_room = [s for s in summaries if not s.hasFlipData and s.medianSameRoomIdle > 30]
    if high_same_room:
        worst_same_room = max(high_same_room, key=lambda s: s.medianSameRoomIdle)
        count = len(high_same_room)
        any_severe = any(s.medianSameRoomIdle > 45 for s in high_same_room)

        insights.append(Insight(
            id='callback-same-room-high',
            category=InsightCategory.CALLBACK_OPTIMIZATION,
            severity=InsightSeverity.WARNING if any_severe else InsightSeverity.INFO,
            title='High Same-Room Idle Time',
            body=(
                f"{count} same-room surgeon{_plural(count, ' has', 's have')} elevated idle time "
                f"between cases. {worst_same_room.surgeonName} averages "
                f"{round_half_up(worst_same_room.medianSameRoomIdle)} min between cases in the same "
                f"room — this is turnover-driven, so focus on room cleaning speed and next-patient "
                f"prep workflow rather than callback timing."
            ),
            action='View same-room turnovers →',
            actionRoute='/analytics/turnover',
            drillThroughType=DrillThroughType.CALLBACK,
            metadata={
                'highSameRoomSurgeons': [
                    {'name': s.surgeonName, 'idle': s.medianSameRoomIdle} for s in high_same_room
                ],
            },
        ))

    return insights


def analyze_utilization_gaps(
    analytics: AnalyticsOverview,
    cfg: ResolvedInsightsConfig
) -> List[Insight]:
    """
    OR utilization against target, with unused-capacity valuation.

    The below-target and on-target insights are mutually exclusive. Rooms on
    default 10h availability are called out as a caveat.
    """
    utilization = analytics.orUtilization
    rooms = utilization.roomBreakdown

    if not rooms:
        return []

    target = _target_or(utilization.target, DEFAULT_UTILIZATION_TARGET)

    if not utilization.targetMet and utilization.value > 0:
        rooms_below = [r for r in rooms if r.utilization < target]
        default_hours_rooms = [r for r in rooms if not r.usingRealHours]

        total_unused_minutes = sum(
            max(0, r.availableHours * 60 * r.daysActive - r.usedMinutes) for r in rooms
        )
        unused_hours = round_half_up(total_unused_minutes / 60)
        reference_days = max(rooms[0].daysActive or 1, 1)
        annual_unused_hours = round_half_up(unused_hours * (cfg.operatingDaysPerYear / reference_days))
        annual_impact = annual_unused_hours * cfg.revenuePerORMinute * 60

        body = (
            f"Overall OR utilization is {utilization.displayValue} against a "
            f"{format_number(target)}% target. {len(rooms_below)} of {len(rooms)} rooms "
            f"are underperforming."
        )
        if default_hours_rooms:
            n = len(default_hours_rooms)
            body += (
                f" Note: {n} room{_plural(n, ' is', 's are')} using default 10h availability — "
                f"configuring actual hours in Settings may change these numbers significantly."
            )

        worst_room = min(rooms_below, key=lambda r: r.utilization) if rooms_below else None
        if worst_room:
            body += (
                f" {worst_room.roomName} is the lowest at {format_number(worst_room.utilization)}% "
                f"with {worst_room.caseCount} cases over {worst_room.daysActive} days."
            )

        return [Insight(
            id='utilization-below-target',
            category=InsightCategory.UTILIZATION_GAP,
            severity=InsightSeverity.CRITICAL if utilization.value < 50 else InsightSeverity.WARNING,
            title='OR Utilization Below Target',
            body=body,
            action='View room breakdown →',
            actionRoute='/analytics/utilization',
            financialImpact=(
                f"~${format_compact_number(annual_impact)}/year in unused capacity"
                if annual_impact > 50000 else None
            ),
            drillThroughType=DrillThroughType.UTILIZATION,
            metadata={
                'utilization': utilization.value,
                'roomsBelowTarget': len(rooms_below),
                'totalRooms': len(rooms),
                'worstRoom': worst_room.roomName if worst_room else None,
                'worstUtilization': worst_room.utilization if worst_room else None,
                'unusedHours': unused_hours,
                'defaultHoursRooms': len(default_hours_rooms),
            },
        )]

    if utilization.targetMet:
        rooms_above = sum(1 for r in rooms if r.utilization >= target)
        return [Insight(
            id='utilization-on-target',
            category=InsightCategory.UTILIZATION_GAP,
            severity=InsightSeverity.POSITIVE,
            title='OR Utilization Meeting Target',
            body=(
                f"{utilization.displayValue} utilization across {len(rooms)} rooms meets the "
                f"{format_number(target)}% goal. {rooms_above} rooms are individually above target."
            ),
            action='View room details →',
            actionRoute='/analytics/utilization',
            drillThroughType=None,
            metadata={'utilization': utilization.value},
        )]

    return []


def analyze_cancellation_trends(
    analytics: AnalyticsOverview,
    cfg: ResolvedInsightsConfig
) -> List[Insight]:
    """
    Same-day cancellations: a trailing zero-cancellation streak or the current rate.

    The streak counts consecutive 'green' days backwards from the most recent
    entry, so it is the currently active streak rather than the historical best.
    """
    cancellations = analytics.cancellationRate
    daily_data = cancellations.dailyData or []

    streak = 0
    for day in reversed(daily_data):
        if day.color != TrackerColor.GREEN.value:
            break
        streak += 1

    if cancellations.sameDayCount == 0 and streak > 5:
        return [Insight(
            id='cancellation-streak',
            category=InsightCategory.CANCELLATION_TREND,
            severity=InsightSeverity.POSITIVE,
            title='Zero Same-Day Cancellations',
            body=(
                f"No same-day cancellations for {streak} consecutive operating days"
                f"{' — an exceptional streak' if streak > 15 else ''}. This reflects strong "
                f"pre-operative screening and patient preparation processes. Each avoided same-day "
                f"cancellation protects approximately ${format_compact_number(cfg.revenuePerCase)} "
                f"in scheduled revenue."
            ),
            action='View cancellation history →',
            actionRoute='/analytics/cancellations',
            drillThroughType=None,
            metadata={'streak': streak, 'sameDayCount': 0},
        )]

    if cancellations.sameDayCount > 0:
        target = _target_or(cancellations.target, DEFAULT_CANCELLATION_TARGET)
        cases_per_day = analytics.totalCases / max(len(daily_data), 1)
        annual_projected = round_half_up(
            cancellations.sameDayRate / 100 * cases_per_day * cfg.operatingDaysPerYear
        )
        annual_impact = annual_projected * cfg.revenuePerCase

        if cancellations.targetMet:
            verdict = f"Still within the <{format_number(target)}% target."
        else:
            verdict = f"Above the <{format_number(target)}% target — review pre-op clearance workflows."

        count = cancellations.sameDayCount
        return [Insight(
            id='cancellation-rate',
            category=InsightCategory.CANCELLATION_TREND,
            severity=(
                InsightSeverity.WARNING if cancellations.sameDayRate > target else InsightSeverity.INFO
            ),
            title='Same-Day Cancellations',
            body=(
                f"{count} same-day cancellation{'' if count == 1 else 's'} this period "
                f"({cancellations.displayValue} rate). {verdict}"
            ),
            action='View cancellation details →',
            actionRoute='/analytics/cancellations',
            financialImpact=(
                f"~${format_compact_number(annual_impact)}/year at risk"
                if annual_impact > 10000 else None
            ),
            drillThroughType=DrillThroughType.CANCELLATION,
            metadata={
                'sameDayCount': count,
                'rate': cancellations.sameDayRate,
                'annualProjected': annual_projected,
            },
        )]

    return []


def analyze_non_operative_time(
    analytics: AnalyticsOverview,
    cfg: ResolvedInsightsConfig
) -> List[Insight]:
    """
    Non-operative time share and the pre-op to surgical time ratio.

    The two findings are gated independently and can both appear.
    """
    insights: List[Insight] = []
    non_op = analytics.nonOperativeTime

    if non_op.value == 0 or analytics.completedCases == 0:
        return insights

    non_op_percent = non_op.percentOfCaseTime
    if non_op_percent is None:
        non_op_percent = _match_int(_PERCENT_PATTERN, non_op.subtitle) or 0

    pre_op = analytics.avgPreOpTime
    post_op = analytics.avgClosingTime + analytics.avgEmergenceTime
    dominant = 'pre-op' if pre_op > post_op else 'post-op'
    dominant_minutes = round_half_up(max(pre_op, post_op))

    if non_op_percent > 30:
        saved_per_case = dominant_minutes * NON_OP_REDUCTION_TARGET
        if analytics.periodLengthDays:
            daily_cases = analytics.completedCases / analytics.periodLengthDays
        else:
            daily_cases = max(analytics.completedCases / CASES_PER_DAY_ESTIMATE, 1)
        daily_saved = saved_per_case * daily_cases
        annual_impact = annualize_minutes(daily_saved, cfg)

        insights.append(Insight(
            id='non-op-time-high',
            category=InsightCategory.NON_OPERATIVE_TIME,
            severity=InsightSeverity.WARNING if non_op_percent > 40 else InsightSeverity.INFO,
            title='Non-Operative Time Opportunity',
            body=(
                f"{format_number(non_op_percent)}% of total case time is non-operative "
                f"({non_op.displayValue} average). The {dominant} phase at {dominant_minutes} min is "
                f"the larger contributor. A 20% reduction in {dominant} time would recover "
                f"~{round_half_up(saved_per_case)} min per case — equivalent to "
                f"{round_half_up(daily_saved)} min of OR capacity daily."
            ),
            action='View time breakdown →',
            actionRoute='/analytics/time-breakdown',
            financialImpact=(
                f"~${format_compact_number(annual_impact)}/year if {dominant} reduced 20%"
                if annual_impact > 20000 else None
            ),
            drillThroughType=DrillThroughType.NON_OP_TIME,
            metadata={
                'nonOpPercent': non_op_percent,
                'dominant': dominant,
                'dominantMinutes': dominant_minutes,
                'preOpTime': round_half_up(pre_op),
                'postOpTime': round_half_up(post_op),
                'savedMinutesPerCase': round_half_up(saved_per_case),
            },
        ))

    surgical = analytics.avgSurgicalTime
    if surgical > 0 and pre_op / surgical > 0.5:
        ratio = round_half_up(pre_op / surgical * 100)
        insights.append(Insight(
            id='preop-ratio-high',
            category=InsightCategory.NON_OPERATIVE_TIME,
            severity=InsightSeverity.INFO,
            title='Pre-Op Time Relative to Surgery',
            body=(
                f"Average pre-op time ({round_half_up(pre_op)} min) is {ratio}% of average surgical "
                f"time ({round_half_up(surgical)} min). For short procedures, this ratio suggests "
                f"room setup and anesthesia induction are proportionally significant — parallel "
                f"prep workflows could help."
            ),
            action='View phase analysis →',
            actionRoute='/analytics/time-breakdown',
            drillThroughType=DrillThroughType.NON_OP_TIME,
            metadata={
                'preOpTime': round_half_up(pre_op),
                'surgicalTime': round_half_up(surgical),
                'ratio': ratio,
            },
        ))

    return insights


def analyze_scheduling_patterns(
    analytics: AnalyticsOverview,
    cfg: ResolvedInsightsConfig
) -> List[Insight]:
    """Volume versus utilization divergence, and significant volume decline."""
    insights: List[Insight] = []
    volume = analytics.caseVolume
    utilization = analytics.orUtilization

    if (
        volume.deltaType == DeltaType.INCREASE
        and volume.delta
        and volume.delta > 10
        and utilization.deltaType == DeltaType.DECREASE
    ):
        insights.append(Insight(
            id='scheduling-divergence',
            category=InsightCategory.SCHEDULING_PATTERN,
            severity=InsightSeverity.WARNING,
            title='Volume Up, Utilization Down',
            body=(
                f"Case volume increased {format_number(volume.delta)}% while OR utilization dropped "
                f"{format_number(utilization.delta)}%. More cases are being scheduled but rooms are "
                f"being used less efficiently — this often indicates scheduling gaps between cases, "
                f"room assignment imbalances, or block time not matching actual demand."
            ),
            action='Review block utilization →',
            actionRoute='/analytics/utilization',
            drillThroughType=DrillThroughType.SCHEDULING,
            metadata={'volumeDelta': volume.delta, 'utilDelta': utilization.delta},
        ))

    if volume.deltaType == DeltaType.DECREASE and volume.delta and volume.delta > 15:
        revenue_loss = round_half_up(volume.value * (volume.delta / 100) * cfg.revenuePerCase)
        insights.append(Insight(
            id='volume-declining',
            category=InsightCategory.SCHEDULING_PATTERN,
            severity=InsightSeverity.CRITICAL if volume.delta > 25 else InsightSeverity.WARNING,
            title='Case Volume Declining',
            body=(
                f"Case volume dropped {format_number(volume.delta)}% compared to the previous period "
                f"({volume.displayValue} cases). This may reflect seasonal patterns, surgeon "
                f"availability changes, or market shifts. Review scheduling pipeline and surgeon "
                f"block allocations."
            ),
            action='View volume trends →',
            actionRoute='/analytics/volume',
            financialImpact=(
                f"~${format_compact_number(revenue_loss)} revenue impact"
                if revenue_loss > 20000 else None
            ),
            drillThroughType=DrillThroughType.SCHEDULING,
            metadata={'volumeDelta': volume.delta, 'totalCases': volume.value},
        ))

    return insights


# =============================================================================
# Main Entry Point
# =============================================================================

INSIGHT_GENERATORS: List[Callable[[AnalyticsOverview, ResolvedInsightsConfig], List[Insight]]] = [
    analyze_first_case_delays,
    analyze_turnover_efficiency,
    analyze_callback_optimization,
    analyze_utilization_gaps,
    analyze_cancellation_trends,
    analyze_non_operative_time,
    analyze_scheduling_patterns,
]


def rank_insights(insights: List[Insight], cfg: ResolvedInsightsConfig) -> List[Insight]:
    """
    Filter by minimum severity, sort, and cap.

    Sorting is stable: severity rank ascending, then parsed financial impact
    descending (insights without an impact string count as zero).
    """
    threshold = SEVERITY_ORDER[cfg.minSeverityToShow]
    filtered = [i for i in insights if SEVERITY_ORDER[i.severity] <= threshold]
    filtered.sort(key=lambda i: (SEVERITY_ORDER[i.severity], -parse_financial_value(i.financialImpact)))
    return filtered[:cfg.maxInsights]


def generate_all_insights(analytics: AnalyticsOverview, cfg: ResolvedInsightsConfig) -> List[Insight]:
    """Run every generator in order and concatenate their output, unranked."""
    insights: List[Insight] = []
    for generator in INSIGHT_GENERATORS:
        insights.extend(generator(analytics, cfg))
    return insights


def generate_insights(
    analytics: AnalyticsOverview,
    config: Optional[InsightsConfig] = None
) -> List[Insight]:
    """
    Generate prioritized, actionable insights from analytics data.

    Args:
        analytics: Pre-aggregated facility analytics for one period.
        config: Optional revenue assumptions and output limits.

    Returns:
        At most `maxInsights` insights ordered critical, warning, positive, info,
        with larger financial impact first within a severity.

    Example:
        >>> insights = generate_insights(analytics, InsightsConfig(maxInsights=3))
        >>> len(insights) <= 3
        True
    """
    cfg = resolve_insights_config(config)
    insights = generate_all_insights(analytics, cfg)
    ranked = rank_insights(insights, cfg)
    logger.debug(f"Generated {len(insights)} insights, returning {len(ranked)}")
    return ranked
