from datetime import date

import pytest

from medical.ages import add_days, age_in_days, to_days


@pytest.mark.parametrize('value,unit,expected', [
    (10, 'days', 10),
    (6, 'weeks', 42),
    (1, 'months', 30),
    (2, 'months', 60),
    (1.5, 'months', 45),
    (11, 'months', 334),
    (15, 'months', 456),
    (1, 'years', 365),
    (4, 'years', 1461),
])
def test_to_days_floors_converted_value(value, unit, expected):
    assert to_days(value, unit) == expected


def test_add_days_crosses_month_and_leap_day():
    assert add_days(date(2024, 2, 28), 1) == date(2024, 2, 29)
    assert add_days(date(2024, 2, 28), 2) == date(2024, 3, 1)
    assert add_days(date(2024, 1, 10), -10) == date(2023, 12, 31)


def test_age_in_days():
    assert age_in_days(date(2023, 1, 1), date(2024, 1, 1)) == 365
    assert age_in_days(date(2024, 1, 1), date(2024, 1, 1)) == 0
