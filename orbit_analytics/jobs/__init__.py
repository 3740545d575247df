"""
Scheduled jobs for the ORbit analytics backend.

- data_quality_detection.py: Nightly milestone validation, issue expiry and
  stale-case detection across all facilities, with an optional Slack digest.

Environment Requirements:
- DATABASE_URL: PostgreSQL connection string
- SLACK_WEBHOOK_URL: Optional Slack incoming webhook
  (https://hooks.slack.com/services/xxx/yyy/zzz)

Usage:
    from orbit_analytics.jobs import run_data_quality_detection

    result = await run_data_quality_detection(notify=False)
"""

from orbit_analytics.jobs.data_quality_detection import (
    run_data_quality_detection,
    process_facility,
    summarize_results,
    format_detection_digest,
    send_detection_digest,
)

__all__ = [
    'run_data_quality_detection',   # Run detection for every facility
    'process_facility',             # One facility: expire, validate, stale scan
    'summarize_results',            # Totals across facility results
    'format_detection_digest',      # Slack Block Kit formatting
    'send_detection_digest',        # Post digest via WebhookClient
]
