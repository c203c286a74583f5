"""Date manipulation utilities"""

import calendar
from datetime import date
from dateutil.relativedelta import relativedelta


def last_day_of_month(year: int, month: int) -> int:
    """Number of days in the given month"""
    return calendar.monthrange(year, month)[1]


def add_months(start: date, months: int) -> date:
    """Add calendar months, clamping to the last day of shorter months (Jan 31 + 1 -> Feb 28/29)"""
    return start + relativedelta(months=months)


def with_day_clamped(year: int, month: int, day: int) -> date:
    """Build a date, clamping day to the end of the month"""
    return date(year, month, min(day, last_day_of_month(year, month)))
