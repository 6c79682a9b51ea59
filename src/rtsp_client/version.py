"""
Version information and UTC time helpers

Session start/end stamps and report output all go through these helpers
so timestamps are always timezone-aware UTC.
"""

from datetime import datetime, timezone

CLIENT_VERSION = "1.0.0"
PROTOCOL_VERSION = "RTSP/1.0"


def utc_now() -> datetime:
    """Get current time in UTC with timezone info."""
    return datetime.now(timezone.utc)


def utc_isoformat(moment: datetime) -> str:
    """Format a datetime as ISO 8601 with 'Z' suffix, millisecond precision.

    Example: '2025-12-08T21:05:00.123Z'
    """
    moment = moment.astimezone(timezone.utc)
    return moment.strftime('%Y-%m-%dT%H:%M:%S.') + f"{moment.microsecond // 1000:03d}Z"


def get_version_string() -> str:
    """Get formatted version string for logging."""
    return f"rtsp-client v{CLIENT_VERSION} ({PROTOCOL_VERSION})"
