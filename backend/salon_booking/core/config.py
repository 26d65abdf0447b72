"""
Centralized configuration module for application-wide settings.

Values are read from environment variables (loaded from ``.env`` by
``main.create_app``) and cached as module-level globals at import time.
Getter functions remain available so tests can re-read the environment.
"""

import logging
import os
from datetime import time
from typing import Optional
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

# ===========================
# Timezone Configuration
# ===========================


def get_app_timezone() -> ZoneInfo:
    """
    Get the business timezone from environment variable.

    Returns:
        ZoneInfo: Business timezone (defaults to UTC if not configured)

    Environment Variables:
        TZ: Timezone identifier (e.g., 'Asia/Jerusalem', 'UTC')
            Default: 'UTC'

    All appointment times are stored as naive wall-clock datetimes in this
    timezone. "Today" for the booking horizon is computed here too.
    """
    tz_name = os.getenv("TZ", "UTC")

    try:
        return ZoneInfo(tz_name)
    except Exception as e:
        logger.warning(
            f"Invalid timezone '{tz_name}' specified in TZ environment variable. "
            f"Falling back to UTC. Error: {e}"
        )
        return ZoneInfo("UTC")


APP_TZ = get_app_timezone()


def log_timezone_config():
    """Log the active timezone configuration at startup."""
    logger.info(
        "Timezone configuration initialized",
        extra={
            "context": {
                "timezone": str(APP_TZ),
                "tz_env_var": os.getenv("TZ", "UTC"),
            }
        },
    )


# ===========================
# Calendar Defaults
# ===========================


def _get_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.warning(
            f"Invalid integer for {name}; using default",
            extra={"context": {"env_var": name, "value": raw, "default": default}},
        )
        return default
    return max(value, minimum)


def _get_time(name: str, default: str) -> time:
    raw = os.getenv(name, default).strip()
    try:
        return time.fromisoformat(raw)
    except ValueError:
        logger.warning(
            f"Invalid wall-clock time for {name}; using default",
            extra={"context": {"env_var": name, "value": raw, "default": default}},
        )
        return time.fromisoformat(default)


def get_default_open_days_ahead() -> int:
    """
    Booking horizon applied when calendar settings are first materialized.

    Environment Variables:
        DEFAULT_OPEN_DAYS_AHEAD: Days ahead bookable (0 closes booking)
            Default: 30
    """
    return _get_int("DEFAULT_OPEN_DAYS_AHEAD", 30)


def get_default_display_start() -> time:
    """Manager calendar start hour (DEFAULT_DISPLAY_START, default 08:00)."""
    return _get_time("DEFAULT_DISPLAY_START", "08:00")


def get_default_display_end() -> time:
    """Manager calendar end hour (DEFAULT_DISPLAY_END, default 20:00)."""
    return _get_time("DEFAULT_DISPLAY_END", "20:00")


def get_default_slot_interval_minutes() -> int:
    """
    Step between candidate start times for stations created without one.

    Environment Variables:
        DEFAULT_SLOT_INTERVAL_MINUTES: Default: 60
    """
    return _get_int("DEFAULT_SLOT_INTERVAL_MINUTES", 60, minimum=1)


def get_default_buffer_minutes() -> int:
    """
    Gap kept free after each booking on stations created without a buffer.

    Environment Variables:
        DEFAULT_BUFFER_MINUTES: Default: 0
    """
    return _get_int("DEFAULT_BUFFER_MINUTES", 0)


DEFAULT_OPEN_DAYS_AHEAD = get_default_open_days_ahead()
DEFAULT_DISPLAY_START = get_default_display_start()
DEFAULT_DISPLAY_END = get_default_display_end()
DEFAULT_SLOT_INTERVAL_MINUTES = get_default_slot_interval_minutes()
DEFAULT_BUFFER_MINUTES = get_default_buffer_minutes()


def log_calendar_config():
    """Log calendar defaults at startup."""
    logger.info(
        "Calendar defaults initialized",
        extra={
            "context": {
                "open_days_ahead": DEFAULT_OPEN_DAYS_AHEAD,
                "display_start": DEFAULT_DISPLAY_START.isoformat("minutes"),
                "display_end": DEFAULT_DISPLAY_END.isoformat("minutes"),
                "slot_interval_minutes": DEFAULT_SLOT_INTERVAL_MINUTES,
                "buffer_minutes": DEFAULT_BUFFER_MINUTES,
            }
        },
    )


# ===========================
# Internal (private) Appointments
# ===========================


def get_internal_customer_phone() -> str:
    """
    Phone number identifying the sentinel customer used for private bookings.

    Environment Variables:
        INTERNAL_CUSTOMER_PHONE: Default: '0000000000'
    """
    return os.getenv("INTERNAL_CUSTOMER_PHONE", "0000000000").strip()


def get_internal_customer_name() -> str:
    """Display name of the sentinel customer (INTERNAL_CUSTOMER_NAME)."""
    return os.getenv("INTERNAL_CUSTOMER_NAME", "Salon Staff").strip() or "Salon Staff"


INTERNAL_CUSTOMER_PHONE = get_internal_customer_phone()
INTERNAL_CUSTOMER_NAME = get_internal_customer_name()


# ===========================
# Notification Configuration
# ===========================


def get_proposed_meeting_webhook_url() -> Optional[str]:
    """
    Get the webhook receiving proposed-meeting invite notifications.

    Returns:
        str | None: Webhook URL, or None when invites cannot be delivered

    Environment Variables:
        PROPOSED_MEETING_WEBHOOK_URL: HTTPS endpoint accepting
            {"clientId": ..., "proposedMeetingId": ...}
    """
    url = os.getenv("PROPOSED_MEETING_WEBHOOK_URL", "").strip()
    if not url:
        logger.warning(
            "PROPOSED_MEETING_WEBHOOK_URL is not configured - invites will fail",
            extra={"context": {"environment": os.getenv("FLASK_ENV", "unknown")}},
        )
        return None
    return url


def get_notification_timeout_seconds() -> int:
    """HTTP timeout for webhook deliveries (NOTIFICATION_TIMEOUT_SECONDS)."""
    return _get_int("NOTIFICATION_TIMEOUT_SECONDS", 10, minimum=1)


PROPOSED_MEETING_WEBHOOK_URL = get_proposed_meeting_webhook_url()
NOTIFICATION_TIMEOUT_SECONDS = get_notification_timeout_seconds()


def log_notification_config():
    """Log notification settings without exposing the webhook URL."""
    logger.info(
        "Notification configuration initialized",
        extra={
            "context": {
                "webhook_configured": bool(PROPOSED_MEETING_WEBHOOK_URL),
                "timeout_seconds": NOTIFICATION_TIMEOUT_SECONDS,
            }
        },
    )
