"""
Period calendar -- date arithmetic for accounting periods.

Pure functions that derive fiscal year, quarter, period code and name from a
period's start date, and compute the date range of a successor period for a
monthly or quarterly cadence.
"""

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum


class Cadence(str, Enum):
    """Length of the periods created by auto-succession."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


@dataclass(frozen=True)
class PeriodRange:
    """Proposed period: code, name and inclusive date bounds."""

    period_code: str
    name: str
    start_date: date
    end_date: date
    fiscal_year: int
    quarter: int
    period_month: int


def month_end(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def add_months(day: date, months: int) -> date:
    """First day of the month ``months`` after the month of ``day``."""
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def fiscal_year_for(day: date, fiscal_year_start_month: int = 1) -> int:
    """
    Fiscal year label for a date.

    A calendar-year book labels the year by its calendar year.  A book whose
    fiscal year starts later in the year labels it by the calendar year in
    which it ends (a July-June year beginning 2024-07 is FY2025).
    """
    if fiscal_year_start_month == 1:
        return day.year
    if day.month >= fiscal_year_start_month:
        return day.year + 1
    return day.year


def fiscal_month_for(day: date, fiscal_year_start_month: int = 1) -> int:
    """Ordinal (1-12) of the date's month within its fiscal year."""
    return (day.month - fiscal_year_start_month) % 12 + 1


def fiscal_quarter_for(day: date, fiscal_year_start_month: int = 1) -> int:
    return (fiscal_month_for(day, fiscal_year_start_month) - 1) // 3 + 1


def fiscal_year_start(day: date, fiscal_year_start_month: int = 1) -> date:
    """First day of the fiscal year containing ``day``."""
    year = day.year if day.month >= fiscal_year_start_month else day.year - 1
    return date(year, fiscal_year_start_month, 1)


def period_code_for(start: date, cadence: Cadence, fiscal_year_start_month: int = 1) -> str:
    if Cadence(cadence) == Cadence.QUARTERLY:
        fiscal_year = fiscal_year_for(start, fiscal_year_start_month)
        quarter = fiscal_quarter_for(start, fiscal_year_start_month)
        return f"{fiscal_year}-Q{quarter}"
    return f"{start.year}-{start.month:02d}"


def period_name_for(start: date, cadence: Cadence, fiscal_year_start_month: int = 1) -> str:
    if Cadence(cadence) == Cadence.QUARTERLY:
        fiscal_year = fiscal_year_for(start, fiscal_year_start_month)
        quarter = fiscal_quarter_for(start, fiscal_year_start_month)
        return f"Q{quarter} FY{fiscal_year}"
    return f"{calendar.month_name[start.month]} {start.year}"


def successor_range(
    end_date: date,
    cadence: Cadence = Cadence.MONTHLY,
    fiscal_year_start_month: int = 1,
) -> PeriodRange:
    """
    Range of the period that immediately follows a period ending on ``end_date``.

    The successor starts the day after ``end_date`` and runs to the end of
    that calendar month (monthly) or to the end of the fiscal quarter that
    contains it (quarterly).  A quarterly successor of a mid-quarter period
    is a short quarter, so every later quarter stays on its boundaries.
    """
    start = end_date + timedelta(days=1)
    span = 1
    if Cadence(cadence) == Cadence.QUARTERLY:
        span = 3 - (fiscal_month_for(start, fiscal_year_start_month) - 1) % 3
    last_month = add_months(start, span - 1)
    end = month_end(last_month.year, last_month.month)
    return PeriodRange(
        period_code=period_code_for(start, cadence, fiscal_year_start_month),
        name=period_name_for(start, cadence, fiscal_year_start_month),
        start_date=start,
        end_date=end,
        fiscal_year=fiscal_year_for(start, fiscal_year_start_month),
        quarter=fiscal_quarter_for(start, fiscal_year_start_month),
        period_month=fiscal_month_for(start, fiscal_year_start_month),
    )
