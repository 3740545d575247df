"""
Nightly data-quality detection job for ORbit.

For every facility the job:
1. Expires unresolved milestone issues past their expires_at
2. Validates milestones on the last 7 days of cases
3. Runs the stale-case rules
4. Reports per-facility counts, then totals across facilities

A failure inside one facility is logged and recorded in that facility's
`errors`; the remaining facilities are still processed. Only a failure to
list facilities at all fails the run.

Facilities are processed concurrently up to DETECTION_MAX_CONCURRENCY, each
on its own pooled connection. Issue inserts are ON CONFLICT DO NOTHING, so
overlapping runs cannot create duplicate open issues.

Environment Requirements:
- DATABASE_URL: PostgreSQL connection string
- SLACK_WEBHOOK_URL: Optional. When set, a Block Kit digest is posted for runs that
  found or expired issues.

Usage:
    # From a scheduler (cron), prints the JSON summary
    python -m orbit_analytics.jobs.data_quality_detection

    # From code
    result = await run_data_quality_detection()
    if result['success']:
        print(result['summary']['totalIssuesFound'])

See Also:
    - orbit_analytics/services/data_quality.py: Expiry and milestone rules
    - orbit_analytics/services/stale_case_detection.py: Stale-case rules
"""

import asyncio
import json
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Set, Tuple

from slack_sdk.webhook import WebhookClient

from orbit_analytics.core.config import get_settings
from orbit_analytics.core.database import close_db, get_db_pool, init_db
from orbit_analytics.models import DetectionJobResponse, DetectionResult, DetectionSummary
from orbit_analytics.services.data_quality import (
    as_utc,
    expire_old_issues,
    run_detection_for_facility,
    utc_now,
)
from orbit_analytics.services.stale_case_detection import StaleThresholds, detect_stale_cases
from orbit_analytics.sql import LIST_FACILITIES

logger = logging.getLogger(__name__)


# =============================================================================
# Per-Facility Processing
# =============================================================================

async def process_facility(
    facility: Dict[str, Any],
    now: datetime,
    semaphore: asyncio.Semaphore,
) -> Tuple[DetectionResult, bool]:
    """
    Run expiry, milestone validation and stale detection for one facility.

    Never raises; failures are logged and returned in `errors`.

    Returns:
        (result, completed). completed is False when the facility aborted.
    """
    settings = get_settings()
    result = DetectionResult(facilityId=facility['id'], facilityName=facility['name'])
    completed = False

    async with semaphore:
        try:
            pool = await get_db_pool()
            async with pool.acquire() as conn:
                result.expiredCount = await expire_old_issues(conn, facility['id'], now)

                cases_checked, issues_found = await run_detection_for_facility(
                    conn,
                    facility['id'],
                    now=now,
                    days_back=settings.detection_days_back,
                    expiry_days=settings.issue_expiry_days,
                    max_minutes=settings.max_case_duration_minutes,
                )
                result.casesChecked = cases_checked
                result.issuesFound = issues_found

                stale = await detect_stale_cases(
                    conn, facility['id'], now, StaleThresholds.from_settings(settings)
                )
                result.staleCasesDetected = stale.detected
                result.staleCasesCreated = stale.created
                result.errors.extend(stale.errors)
                completed = True
        except Exception as e:
            logger.error(f"Error processing facility {facility['id']}: {e}", exc_info=True)
            result.errors.append(str(e))

    logger.info(
        f"Detection for {facility['name']}: {result.casesChecked} cases checked, "
        f"{result.issuesFound} issues found, {result.expiredCount} expired, "
        f"{result.staleCasesCreated}/{result.staleCasesDetected} stale created"
    )
    return result, completed


def summarize_results(
    results: List[DetectionResult],
    failed_ids: Optional[Set[str]] = None
) -> DetectionSummary:
    """Totals across facilities. Facilities in `failed_ids` are not counted."""
    failed_ids = failed_ids or set()
    summary = DetectionSummary()
    for result in results:
        if result.facilityId in failed_ids:
            continue
        summary.facilitiesProcessed += 1
        summary.totalCasesChecked += result.casesChecked
        summary.totalIssuesFound += result.issuesFound + result.staleCasesCreated
        summary.totalIssuesExpired += result.expiredCount
        summary.totalStaleCasesDetected += result.staleCasesDetected
        summary.totalStaleCasesCreated += result.staleCasesCreated
    return summary


# =============================================================================
# Slack Digest
# =============================================================================

def format_detection_digest(
    summary: DetectionSummary,
    results: List[DetectionResult],
    run_date: date,
) -> List[Dict[str, Any]]:
    """
    Format a detection run into Slack Block Kit blocks.

    Only facilities with new issues or errors get their own line.
    """
    blocks: List[Dict[str, Any]] = []

    blocks.append({
        "type": "header",
        "text": {
            "type": "plain_text",
            "text": f"ORbit Data Quality - {run_date.strftime('%B %d, %Y')}",
            "emoji": True
        }
    })
    blocks.append({"type": "divider"})

    summary_text = (
        f"*Facilities processed:* {summary.facilitiesProcessed}\n"
        f"*Cases checked:* {summary.totalCasesChecked:,}\n"
        f"*New issues:* {summary.totalIssuesFound:,}  |  "
        f"*Expired:* {summary.totalIssuesExpired:,}\n"
        f"*Stale cases:* {summary.totalStaleCasesCreated:,} new of "
        f"{summary.totalStaleCasesDetected:,} detected"
    )
    blocks.append({
        "type": "section",
        "text": {"type": "mrkdwn", "text": summary_text}
    })

    lines = []
    for result in results:
        if result.errors:
            lines.append(f"• *{result.facilityName}*: {len(result.errors)} error(s)")
        elif result.issuesFound or result.staleCasesCreated:
            lines.append(
                f"• *{result.facilityName}*: {result.issuesFound} milestone, "
                f"{result.staleCasesCreated} stale"
            )

    if lines:
        blocks.append({"type": "divider"})
        blocks.append({
            "type": "section",
            "text": {"type": "mrkdwn", "text": "\n".join(lines)}
        })

    blocks.append({
        "type": "context",
        "elements": [
            {
                "type": "mrkdwn",
                "text": f"Generated at {utc_now().strftime('%Y-%m-%d %H:%M:%S UTC')}"
            }
        ]
    })

    return blocks


def send_detection_digest(
    summary: DetectionSummary,
    results: List[DetectionResult],
    run_date: date,
) -> Dict[str, Any]:
    """
    Post the detection digest to the configured Slack webhook.

    Returns:
        Dict with success flag, plus skipped/reason or error.
    """
    settings = get_settings()
    if not settings.slack_webhook_url:
        return {'success': True, 'skipped': True, 'reason': 'SLACK_WEBHOOK_URL not configured'}

    blocks = format_detection_digest(summary, results, run_date)

    try:
        client = WebhookClient(settings.slack_webhook_url)
        response = client.send(blocks=blocks)
    except Exception as e:
        logger.warning(f"Failed to send detection digest: {e}")
        return {'success': False, 'error': f'Failed to send Slack message: {str(e)}'}

    if response.status_code == 200:
        return {'success': True}

    return {
        'success': False,
        'error': f'Slack API returned status {response.status_code}: {response.body}'
    }


# =============================================================================
# Main Entry Point
# =============================================================================

async def run_data_quality_detection(
    now: Optional[datetime] = None,
    notify: bool = True,
) -> Dict[str, Any]:
    """
    Run data-quality detection across all facilities.

    Args:
        now: Detection time (defaults to current UTC time).
        notify: Post a Slack digest when the run found or expired issues.

    Returns:
        Dict with:
        - success: False only if facilities could not be listed
        - summary: DetectionSummary totals (on success)
        - results: Per-facility DetectionResult dicts (on success)
        - error: Error message (on failure)
        - notification: Digest outcome, present only when a digest was attempted
    """
    settings = get_settings()
    now = as_utc(now or utc_now())

    try:
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            facilities = [dict(row) for row in await conn.fetch(LIST_FACILITIES)]
    except Exception as e:
        logger.error(f"Data quality detection failed to list facilities: {e}", exc_info=True)
        return DetectionJobResponse(success=False, error=str(e)).model_dump(exclude_none=True)

    semaphore = asyncio.Semaphore(max(1, settings.detection_max_concurrency))
    outcomes = await asyncio.gather(*[
        process_facility(facility, now, semaphore) for facility in facilities
    ])
    results = [result for result, _ in outcomes]
    failed_ids = {result.facilityId for result, completed in outcomes if not completed}
    summary = summarize_results(results, failed_ids)

    logger.info(
        f"Data quality detection complete: {summary.facilitiesProcessed}/{len(facilities)} facilities, "
        f"{summary.totalIssuesFound} issues found, {summary.totalIssuesExpired} expired"
    )

    notification: Optional[Dict[str, Any]] = None
    if notify and (summary.totalIssuesFound or summary.totalIssuesExpired):
        notification = send_detection_digest(summary, results, now.date())
        if not notification['success']:
            logger.warning(f"Detection digest not sent: {notification.get('error')}")
    elif notify:
        logger.info("No new or expired issues, skipping detection digest")

    return DetectionJobResponse(
        success=True, summary=summary, results=results, notification=notification
    ).model_dump(exclude_none=True)


async def _main() -> Dict[str, Any]:
    await init_db()
    try:
        return await run_data_quality_detection()
    finally:
        await close_db()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    outcome = asyncio.run(_main())
    print(json.dumps(outcome, indent=2, default=str))
    raise SystemExit(0 if outcome['success'] else 1)
