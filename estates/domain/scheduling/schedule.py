"""Schedule configuration and next-run computation for the daily property sync"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ...config import SYNC_MAX_PAGES_CAP
from ..properties.transform import DUBAI_AREAS

AREAS_PER_CHUNK = 5
DEFAULT_CRON_MINUTE = 0
DEFAULT_CRON_HOUR = 23
DEFAULT_PAGES_PER_AREA = 2

_LEADING_INT = re.compile(r"^(\d+)")


def build_area_chunks(area_slugs: list[str], size: int = AREAS_PER_CHUNK) -> list[list[str]]:
    return [area_slugs[i : i + size] for i in range(0, len(area_slugs), size)]


SYNC_AREA_CHUNKS = build_area_chunks(list(DUBAI_AREAS))


@dataclass(frozen=True)
class ScheduleConfig:
    """Immutable view of a sync_schedules row, handed to each scheduled run"""

    schedule_name: str
    is_enabled: bool
    cron_expression: str
    pages_per_area: int = DEFAULT_PAGES_PER_AREA
    lite_mode: bool = True
    include_rentals: bool = True
    skip_recently_synced: bool = True

    @classmethod
    def from_row(cls, schedule) -> "ScheduleConfig":
        config = schedule.config or {}
        pages = config.get("pages_per_area") or DEFAULT_PAGES_PER_AREA
        return cls(
            schedule_name=schedule.schedule_name,
            is_enabled=bool(schedule.is_enabled),
            cron_expression=schedule.cron_expression or f"{DEFAULT_CRON_MINUTE} {DEFAULT_CRON_HOUR} * * *",
            pages_per_area=max(1, min(int(pages), SYNC_MAX_PAGES_CAP)),
            # Only an explicit false turns these off
            lite_mode=config.get("lite_mode") is not False,
            include_rentals=config.get("include_rentals") is not False,
            skip_recently_synced=config.get("skip_recently_synced") is not False,
        )


def _parse_cron_field(value: str, default: int, upper: int) -> int:
    match = _LEADING_INT.match(value)
    if not match:
        return default
    parsed = int(match.group(1))
    return parsed if parsed <= upper else default


def next_run_time(cron_expression: Optional[str], now: Optional[datetime] = None) -> datetime:
    """Next UTC run for a daily "minute hour * * *" expression.

    Only the minute and hour fields are read. Unparsable fields fall back to 0 and 23;
    an expression with fewer than two fields yields now + 1 day.
    """
    now = now or datetime.utcnow()
    parts = (cron_expression or "").split()
    if len(parts) < 2:
        return now + timedelta(days=1)

    minute = _parse_cron_field(parts[0], DEFAULT_CRON_MINUTE, 59)
    hour = _parse_cron_field(parts[1], DEFAULT_CRON_HOUR, 23)
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate
