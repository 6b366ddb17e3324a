"""
Age and calendar arithmetic shared by eligibility and scheduling.

All comparisons happen on a day-count basis: windows expressed in weeks,
months or years are converted with fixed average lengths, then floored.
"""
import math
from datetime import timedelta
from decimal import Decimal

DAYS = 'days'
WEEKS = 'weeks'
MONTHS = 'months'
YEARS = 'years'

AGE_UNIT_CHOICES = (
    (DAYS, 'Days'),
    (WEEKS, 'Weeks'),
    (MONTHS, 'Months'),
    (YEARS, 'Years'),
)

DAYS_PER_UNIT = {
    DAYS: Decimal('1'),
    WEEKS: Decimal('7'),
    MONTHS: Decimal('30.44'),  # average month
    YEARS: Decimal('365.25'),  # leap years included
}


def to_days(value, unit):
    """Convert ``value`` expressed in ``unit`` to a whole number of days."""
    return math.floor(Decimal(str(value)) * DAYS_PER_UNIT[unit])


def add_days(start, days):
    return start + timedelta(days=days)


def age_in_days(date_of_birth, today):
    return (today - date_of_birth).days
