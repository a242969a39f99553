from __future__ import annotations

from datetime import MAXYEAR, datetime, timezone
from zoneinfo import ZoneInfo

SECONDS_PER_DAY = 86400


def resolve_zone(name: str | None) -> ZoneInfo | timezone:
    if not name or name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def month_bounds(month: int, year: int, zone_name: str | None = None) -> tuple[int, int]:
    """Return `[start, end)` epoch seconds covering one calendar month in a zone."""
    if not 1 <= month <= 12:
        raise ValueError(f"month must be in 1..12, got {month}")
    zone = resolve_zone(zone_name)
    start = datetime(year, month, 1, tzinfo=zone)
    if month < 12:
        end = int(datetime(year, month + 1, 1, tzinfo=zone).timestamp())
    elif year < MAXYEAR:
        end = int(datetime(year + 1, 1, 1, tzinfo=zone).timestamp())
    else:
        # datetime cannot represent year 10000; close the range one day after Dec 31.
        end = int(datetime(year, 12, 31, tzinfo=zone).timestamp()) + SECONDS_PER_DAY
    return int(start.timestamp()), end


def epoch_now() -> int:
    return int(datetime.now(tz=timezone.utc).timestamp())
