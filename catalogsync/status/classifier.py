"""Maintenance status classification from upstream activity."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from ..time_utils import parse_timestamp, utc_now, whole_days_between


class MaintenanceStatus(str, Enum):
    """How recently a repository has been worked on."""

    ACTIVE = "active"
    REGULAR = "regular"
    OCCASIONAL = "occasional"
    DORMANT = "dormant"
    ARCHIVED = "archived"
    UNKNOWN = "unknown"


# Upper bound (inclusive) in days since the last commit, checked in order.
THRESHOLDS = [
    (30, MaintenanceStatus.ACTIVE),
    (180, MaintenanceStatus.REGULAR),
    (365, MaintenanceStatus.OCCASIONAL),
]


@dataclass(frozen=True)
class StatusDisplay:
    """Presentation hints for a status."""
    message: str
    icon: str
    color: str
    badge_variant: str


_GRAY = "text-gray-600 dark:text-gray-400"

_DISPLAY = {
    MaintenanceStatus.ACTIVE: ("Actively Updated", "activity", "text-green-600 dark:text-green-400", "default"),
    MaintenanceStatus.REGULAR: ("Regularly Updated", "refresh-ccw", "text-yellow-600 dark:text-yellow-400", "secondary"),
    MaintenanceStatus.OCCASIONAL: ("Occasionally Updated", "clock-3", "text-orange-600 dark:text-orange-400", "outline"),
    MaintenanceStatus.DORMANT: ("Dormant", "moon", "text-red-600 dark:text-red-400", "destructive"),
}


def days_since(value, now: datetime | None = None) -> int | None:
    """Whole days since ``value`` (datetime, date or ISO string)."""
    moment = parse_timestamp(value)
    if moment is None:
        return None
    return whole_days_between(moment, now or utc_now())


def classify_days(is_archived: bool, days: int | None) -> MaintenanceStatus:
    """Apply the threshold table to a day count."""
    if is_archived:
        return MaintenanceStatus.ARCHIVED
    if days is None:
        return MaintenanceStatus.UNKNOWN
    for limit, status in THRESHOLDS:
        if days <= limit:
            return status
    return MaintenanceStatus.DORMANT


def classify(is_archived: bool, last_commit_at, now: datetime | None = None) -> MaintenanceStatus:
    """Classify a repository; the archived flag overrides any commit date."""
    return classify_days(is_archived, days_since(last_commit_at, now))


def _plural(count: int, unit: str) -> str:
    return f"1 {unit}" if count == 1 else f"{count} {unit}s"


def relative_time(days: int | None) -> str:
    """Describe a day count: "today", "3 days", "2 weeks", "5 months", "1 year"."""
    if days is None:
        return "unknown time"
    if days <= 0:
        return "today"
    if days < 7:
        return _plural(days, "day")
    if days < 30:
        return _plural(days // 7, "week")
    if days < 365:
        return _plural(days // 30, "month")
    return _plural(days // 365, "year")


def relative_time_since(value, now: datetime | None = None) -> str:
    """relative_time() for a date rather than a day count."""
    return relative_time(days_since(value, now))


def describe(status: MaintenanceStatus, days: int | None) -> StatusDisplay:
    """Build the display message and styling for a status."""
    if status in _DISPLAY:
        label, icon, color, badge = _DISPLAY[status]
        return StatusDisplay(
            message=f"{label} - Last commit {relative_time(days)} ago",
            icon=icon,
            color=color,
            badge_variant=badge,
        )
    if status == MaintenanceStatus.ARCHIVED:
        return StatusDisplay("Archived - Not maintained", "archive", _GRAY, "outline")
    return StatusDisplay("Status Unknown", "activity", _GRAY, "outline")


def format_version(version: str | None) -> str:
    """Normalize a tag for display with a single ``v`` prefix."""
    if not version:
        return ""
    return f"v{version.removeprefix('v')}"


def format_date(value) -> str:
    """Format a date as e.g. ``Mar 5, 2024``."""
    moment = parse_timestamp(value)
    if moment is None:
        return "Unknown"
    return f"{moment.strftime('%b')} {moment.day}, {moment.year}"


def parse_date(value) -> datetime | None:
    """Parse an ISO timestamp or ``YYYY-MM-DD`` date; None when unparseable."""
    return parse_timestamp(value)
