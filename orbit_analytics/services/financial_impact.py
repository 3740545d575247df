"""
Financial impact estimation helpers for the insight engine.

Translates recovered or lost OR minutes and cases into annualized dollar
estimates, and formats/parses the compact dollar strings shown on insight
cards ("~$180K/year estimated impact").

Key Functions:
- resolve_insights_config(): Apply facility defaults, folding orHourlyRate in
- annualize_minutes(): Daily OR minutes -> annual dollars
- format_compact_number(): 180000 -> "180K", 1500000 -> "1.5M"
- parse_financial_value(): "~$180K/year" -> 180000.0 (sort key only)
- round_half_up(), format_number(): Narrative-friendly rounding and rendering

See Also:
    - orbit_analytics/services/insights_engine.py: Consumer of these helpers
"""

import math
import re
from typing import Optional

from orbit_analytics.models import InsightsConfig, InsightSeverity, ResolvedInsightsConfig


# =============================================================================
# Defaults
# =============================================================================

# ~$2,160/hr, conservative ASC average
DEFAULT_REVENUE_PER_OR_MINUTE: float = 36.0
DEFAULT_REVENUE_PER_CASE: float = 5800.0
DEFAULT_OPERATING_DAYS_PER_YEAR: int = 250
DEFAULT_MAX_INSIGHTS: int = 6
DEFAULT_MIN_SEVERITY: InsightSeverity = InsightSeverity.INFO

_FINANCIAL_PATTERN = re.compile(r"\$([\d.]+)(K|M)?")


# =============================================================================
# Configuration Resolution
# =============================================================================

def resolve_insights_config(config: Optional[InsightsConfig] = None) -> ResolvedInsightsConfig:
    """
    Resolve an optional InsightsConfig into concrete values.

    A truthy `orHourlyRate` always wins over an explicit `revenuePerORMinute`
    and is converted with `orHourlyRate / 60`.

    Args:
        config: Partial configuration, or None for all defaults.

    Returns:
        ResolvedInsightsConfig with every field populated.

    Example:
        >>> resolve_insights_config(InsightsConfig(orHourlyRate=2160)).revenuePerORMinute
        36.0
    """
    config = config or InsightsConfig()

    if config.orHourlyRate:
        revenue_per_minute = config.orHourlyRate / 60
    elif config.revenuePerORMinute is not None:
        revenue_per_minute = config.revenuePerORMinute
    else:
        revenue_per_minute = DEFAULT_REVENUE_PER_OR_MINUTE

    return ResolvedInsightsConfig(
        revenuePerORMinute=revenue_per_minute,
        revenuePerCase=(
            config.revenuePerCase if config.revenuePerCase is not None else DEFAULT_REVENUE_PER_CASE
        ),
        operatingDaysPerYear=(
            config.operatingDaysPerYear
            if config.operatingDaysPerYear is not None
            else DEFAULT_OPERATING_DAYS_PER_YEAR
        ),
        maxInsights=config.maxInsights if config.maxInsights is not None else DEFAULT_MAX_INSIGHTS,
        minSeverityToShow=config.minSeverityToShow or DEFAULT_MIN_SEVERITY,
    )


# =============================================================================
# Numeric Helpers
# =============================================================================

def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(value + 0.5))


def format_number(value: Optional[float]) -> str:
    """
    Render a number for narrative text: integral values drop the decimal point.

    Example:
        >>> format_number(85.0), format_number(12.5)
        ('85', '12.5')
    """
    if value is None:
        return "0"
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def annualize_minutes(daily_minutes: float, cfg: ResolvedInsightsConfig) -> int:
    """Dollar value of `daily_minutes` OR minutes per day over an operating year."""
    return round_half_up(daily_minutes * cfg.revenuePerORMinute * cfg.operatingDaysPerYear)


# =============================================================================
# Formatting and Parsing
# =============================================================================

def format_compact_number(value: float) -> str:
    """
    Format a dollar amount compactly.

    Args:
        value: Non-negative amount.

    Returns:
        "<n.n>M" for millions (trailing ".0" stripped), "<n>K" for thousands,
        otherwise the integer as a string.

    Example:
        >>> format_compact_number(1_500_000), format_compact_number(180_000), format_compact_number(999)
        ('1.5M', '180K', '999')
    """
    if value >= 1_000_000:
        tenths = round_half_up(value / 100_000)
        if tenths % 10 == 0:
            return f"{tenths // 10}M"
        return f"{tenths / 10}M"
    if value >= 1_000:
        return f"{round_half_up(value / 1_000)}K"
    return str(round_half_up(value))


def parse_financial_value(impact: Optional[str]) -> float:
    """
    Extract the dollar magnitude from a financial impact string.

    Used only as a sort key, so absent or malformed input returns 0.

    Example:
        >>> parse_financial_value("~$180K/year estimated impact")
        180000.0
    """
    if not impact:
        return 0.0

    match = _FINANCIAL_PATTERN.search(impact)
    if not match:
        return 0.0

    try:
        base = float(match.group(1))
    except ValueError:
        return 0.0

    suffix = match.group(2)
    if suffix == "M":
        return base * 1_000_000
    if suffix == "K":
        return base * 1_000
    return base
