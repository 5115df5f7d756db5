from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


PERIOD_SLUGS = ("all", "this_month", "last_month", "this_year")


def local_today(timezone: str) -> date:
    return datetime.now(ZoneInfo(timezone)).date()


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def clamped_date(year: int, month: int, day: int) -> date:
    """Build a date, snapping days past the end of the month to its last day."""
    return date(year, month, min(day, days_in_month(year, month)))


def add_months(base: date, months: int, *, day: Optional[int] = None) -> date:
    month_index = (base.year * 12) + (base.month - 1) + months
    year = month_index // 12
    month = (month_index % 12) + 1
    return clamped_date(year, month, day if day is not None else base.day)


def month_end(year: int, month: int) -> date:
    return date(year, month, days_in_month(year, month))


def trailing_months(today: date, count: int) -> list[date]:
    """First days of the ``count`` calendar months ending with today's, oldest first."""
    first = today.replace(day=1)
    return [add_months(first, -offset) for offset in range(count - 1, -1, -1)]


def resolve_period(slug: Optional[str], *, today: date) -> Period:
    if not slug or slug == "all":
        return Period("all", date.min, date.max)
    if slug == "last_month":
        first_this = today.replace(day=1)
        last_month_end = first_this - date.resolution
        return Period("last_month", last_month_end.replace(day=1), last_month_end)
    if slug == "this_year":
        return Period("this_year", date(today.year, 1, 1), date(today.year, 12, 31))
    if slug == "this_month":
        return Period(
            "this_month", today.replace(day=1), month_end(today.year, today.month)
        )
    raise ValueError(f"Unknown period: {slug}")
