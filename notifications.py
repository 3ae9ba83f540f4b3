"""
Retirarr Notification System
Sends cycle summaries through an Apprise API server
"""

import requests

from media_results import Action, MediaType
from retirarr_utils import normalize_url, format_size

from logging_config import main_logger as logger

# Config will be passed in from retirarr.py
NOTIFICATIONS_ENABLED = False
APPRISE_URL = ''
APPRISE_KEY = 'apprise'
APPRISE_TAG = 'all'

SERIES_TYPES = (MediaType.SERIES, MediaType.EMBY_SERIES)
MOVIE_TYPES = (MediaType.MOVIE, MediaType.EMBY_MOVIE)


def init_notifications(notifications_enabled, apprise_url, apprise_key='apprise', apprise_tag='all'):
    """Initialize notification config - called from retirarr.py on startup"""
    global NOTIFICATIONS_ENABLED, APPRISE_URL, APPRISE_KEY, APPRISE_TAG
    NOTIFICATIONS_ENABLED = notifications_enabled
    APPRISE_URL = normalize_url(apprise_url) or ''
    APPRISE_KEY = apprise_key or 'apprise'
    APPRISE_TAG = apprise_tag or 'all'


def send_notification(notification_type, **data):
    """
    Central notification dispatcher

    Args:
        notification_type: Type of notification to send
        **data: Context data for the notification

    Supported types:
        - cleanup_results: Summary of a finished cleanup cycle

    Returns:
        True if Apprise accepted the notification, False otherwise
    """
    if not NOTIFICATIONS_ENABLED:
        logger.debug(f"Notifications disabled, skipping {notification_type}")
        return False

    if not APPRISE_URL:
        logger.warning("Apprise URL not configured")
        return False

    try:
        if notification_type == "cleanup_results":
            result = data['result']
            if not result.results:
                logger.debug("Nothing to report, skipping notification")
                return False
            title, body, notify_type = build_cleanup_results_message(result)
        else:
            logger.warning(f"Unknown notification type: {notification_type}")
            return False

        send_apprise_notification(title, body, notify_type)
        logger.info(f"🔔 Sent {notification_type} notification")
        return True

    except Exception as e:
        logger.warning(f"🔔 Failed to send notification: {e}")
        return False


def build_cleanup_results_message(result):
    """Returns (title, body, type) for a ProcessingResult."""
    title = "🧹 Cleanup Results"
    if result.dry_run:
        title += " (DRY RUN)"

    lines = []
    if result.dry_run:
        lines.append("⚠️ *DRY RUN MODE*")
        lines.append("")

    lines.extend(_format_section("📺 SERIES", result, SERIES_TYPES))
    lines.extend(_format_section("🎬 MOVIES", result, MOVIE_TYPES))

    notify_type = "success" if result.has_removals() else "info"
    return title, "\n".join(lines).rstrip() + "\n", notify_type


def _format_title(r):
    return f"{r.title} ({r.year})" if r.year else r.title


def _format_size_tag(r):
    return f" [{format_size(r.size_on_disk)}]" if r.size_on_disk else ""


def _format_section(header, result, media_types):
    removed = (result.by_action(Action.REMOVED, media_types)
               + result.by_action(Action.DRY_RUN_REMOVE, media_types))
    queued = result.by_action(Action.QUEUED, media_types)
    skipped = result.by_action(Action.SKIPPED, media_types)
    errors = result.by_action(Action.ERROR, media_types)

    if not (removed or queued or skipped or errors):
        return []

    lines = [f"*{header}*"]
    if removed:
        label = "WOULD REMOVE" if result.dry_run else "REMOVED"
        lines.append(f"{label} ({len(removed)}):")
        for r in removed:
            lines.append(f"• {_format_title(r)}{_format_size_tag(r)} ← {r.reason}")
        lines.append("")

    if queued:
        lines.append(f"QUEUED ({len(queued)}):")
        for r in queued:
            line = f"• {_format_title(r)}{_format_size_tag(r)} ← {r.reason}"
            if r.days_until:
                line += f" (in {r.days_until} days)"
            lines.append(line)
        lines.append("")

    if skipped:
        lines.append(f"SKIPPED ({len(skipped)}):")
        for r in skipped:
            lines.append(f"• {_format_title(r)} ← {r.reason}")
        lines.append("")

    if errors:
        lines.append(f"ERRORS ({len(errors)}):")
        for r in errors:
            lines.append(f"• {_format_title(r)} ← {r.reason}")
        lines.append("")

    return lines


def send_apprise_notification(title, body, notify_type='info'):
    """POST to the Apprise API stateful notify endpoint"""
    response = requests.post(
        f"{APPRISE_URL}/notify/{APPRISE_KEY}",
        data={
            'title': title,
            'body': body,
            'type': notify_type,
            'tags': APPRISE_TAG,
        },
        timeout=30,
    )
    response.raise_for_status()
    return response.status_code
